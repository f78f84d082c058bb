"""
Crisis scoring: blends sentiment, volume, negativity and influencer signals
into one bounded 0-100 score and maps that score onto a severity tier.
"""

from dataclasses import dataclass

import numpy as np

from db.enums import CrisisSeverity


@dataclass(frozen=True)
class CrisisScoreInputs:
    """Signals feeding the crisis score."""

    sentiment_score: float  # Mean sentiment of the current window, -1..1
    sentiment_change: float  # Current minus baseline sentiment
    volume_change: float  # Percent change in mention volume
    negative_mention_percentage: float  # 0..100
    influencer_involvement: int  # Influencer mentions in the current window
    total_mentions: int  # Mentions in the current window


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of each 0-100 partial score; they sum to 1."""

    sentiment: float = 0.25
    sentiment_change: float = 0.20
    volume_change: float = 0.20
    negative_ratio: float = 0.20
    influencer: float = 0.15
    volume_floor_percent: float = 0.0
    volume_saturation_percent: float = 500.0
    influencer_saturation: int = 5
    full_confidence_mentions: int = 100


DEFAULT_WEIGHTS = ScoringWeights()

# Lower bound of each tier, highest first
SEVERITY_FLOORS = (
    (75.0, CrisisSeverity.CRITICAL),
    (50.0, CrisisSeverity.HIGH),
    (30.0, CrisisSeverity.MEDIUM),
    (0.0, CrisisSeverity.LOW),
)


def _unit(value: float) -> float:
    return float(np.clip(value, 0.0, 1.0))


def sentiment_partial(sentiment_score: float) -> float:
    return _unit(-sentiment_score) * 100


def sentiment_change_partial(sentiment_change: float) -> float:
    return _unit(-sentiment_change) * 100


def volume_change_partial(volume_change: float, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    span = weights.volume_saturation_percent - weights.volume_floor_percent
    return _unit((volume_change - weights.volume_floor_percent) / span) * 100


def influencer_partial(influencer_involvement: int, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    """Saturating curve: the first few influencer mentions count the most."""
    if influencer_involvement <= 0:
        return 0.0
    curve = np.log1p(influencer_involvement) / np.log1p(weights.influencer_saturation)
    return _unit(curve) * 100


def confidence_factor(total_mentions: int, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    """Discount for small samples, reaching 1.0 at full_confidence_mentions."""
    if total_mentions <= 0:
        return 0.0
    return _unit(np.sqrt(total_mentions / weights.full_confidence_mentions))


def calculate_crisis_score(
    inputs: CrisisScoreInputs, weights: ScoringWeights = DEFAULT_WEIGHTS
) -> float:
    """
    Calculate the crisis score (0-100).

    Each signal is normalized to a 0-100 partial, the partials are combined
    with fixed weights and the sum is scaled by a sample-size confidence
    factor, so a handful of mentions can never produce a CRITICAL score.

    Args:
        inputs: Signals from the current and baseline windows
        weights: Partial weights and saturation points

    Returns:
        Score rounded to two decimals, clamped to [0, 100]
    """
    weighted = (
        weights.sentiment * sentiment_partial(inputs.sentiment_score)
        + weights.sentiment_change * sentiment_change_partial(inputs.sentiment_change)
        + weights.volume_change * volume_change_partial(inputs.volume_change, weights)
        + weights.negative_ratio * float(np.clip(inputs.negative_mention_percentage, 0.0, 100.0))
        + weights.influencer * influencer_partial(inputs.influencer_involvement, weights)
    )
    score = weighted * confidence_factor(inputs.total_mentions, weights)
    return float(np.clip(round(score, 2), 0.0, 100.0))


def severity_from_score(score: float) -> CrisisSeverity:
    """Map a crisis score onto LOW/MEDIUM/HIGH/CRITICAL."""
    for floor, severity in SEVERITY_FLOORS:
        if score >= floor:
            return severity
    return CrisisSeverity.LOW


def severity_floor(severity: CrisisSeverity) -> float:
    """Lowest score that maps onto ``severity``."""
    for floor, tier in SEVERITY_FLOORS:
        if tier is severity:
            return floor
    return 0.0
