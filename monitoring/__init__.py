"""
Crisis monitoring module.

This module detects sentiment drops and mention volume surges per workspace,
turns them into tracked crises, and exposes the crisis lifecycle and dashboard.
"""

__version__ = "0.1.0"
