"""
Test Suite Module

This module contains all tests for the Crisis Monitor,
including unit tests, store-backed integration tests, and test utilities.
"""

__version__ = "0.1.0"
__author__ = "Crisis Monitor Team"
