"""
Mention Aggregation Module

This module provides functionality to:
1. Convert a window of mentions into a pandas DataFrame
2. Reduce that window into summary statistics (WindowAggregate)
3. Extract incident context (keywords, hashtags, influencers, samples)
"""

import logging
import re
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List

import pandas as pd

from db.enums import Sentiment

from .models import Mention

logger = logging.getLogger(__name__)

SENTIMENT_VALUES = {
    Sentiment.POSITIVE: 1.0,
    Sentiment.NEUTRAL: 0.0,
    Sentiment.NEGATIVE: -1.0,
}

MENTION_COLUMNS = [
    "id",
    "platform",
    "sentiment",
    "sentiment_score",
    "published_at",
    "likes",
    "comments",
    "shares",
    "reach",
    "is_influencer",
    "author_username",
    "author_followers",
    "content",
]

KEYWORD_PATTERN = re.compile(r"\b[^\W\d_]{4,}\b")
HASHTAG_PATTERN = re.compile(r"#\w+")
STOPWORDS = {
    "about",
    "after",
    "been",
    "from",
    "have",
    "just",
    "really",
    "that",
    "their",
    "them",
    "there",
    "they",
    "this",
    "were",
    "what",
    "when",
    "will",
    "with",
    "would",
    "your",
}


@dataclass(frozen=True)
class WindowAggregate:
    """Summary statistics for the mentions in one time window."""

    count: int
    mean_sentiment_score: float
    negative_mention_percentage: float
    influencer_count: int
    total_reach: int
    negative_count: int = 0
    total_engagement: int = 0

    @classmethod
    def empty(cls) -> "WindowAggregate":
        return cls(
            count=0,
            mean_sentiment_score=0.0,
            negative_mention_percentage=0.0,
            influencer_count=0,
            total_reach=0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def mentions_to_frame(mentions: Iterable[Mention]) -> pd.DataFrame:
    """
    Convert mentions into a DataFrame with one row per mention.

    Args:
        mentions: Mentions from a single window

    Returns:
        DataFrame with MENTION_COLUMNS; numeric columns are coerced so that
        missing finer sentiment scores and follower counts become NaN
    """
    df = pd.DataFrame(
        [{column: getattr(mention, column) for column in MENTION_COLUMNS} for mention in mentions],
        columns=MENTION_COLUMNS,
    )
    df["sentiment_score"] = pd.to_numeric(df["sentiment_score"], errors="coerce")
    df["author_followers"] = pd.to_numeric(df["author_followers"], errors="coerce")
    return df


def aggregate(mentions: Iterable[Mention]) -> WindowAggregate:
    """
    Reduce a window of mentions to a WindowAggregate.

    A mention's finer ``sentiment_score`` is used when present, otherwise its
    label maps to NEGATIVE=-1, NEUTRAL=0, POSITIVE=+1. An empty window yields
    ``WindowAggregate.empty()``; callers treat ``count == 0`` as insufficient data.
    """
    df = mentions_to_frame(mentions)
    if df.empty:
        return WindowAggregate.empty()

    labelled = df["sentiment"].map(SENTIMENT_VALUES).astype(float)
    scores = df["sentiment_score"].clip(-1.0, 1.0).fillna(labelled)

    count = len(df)
    negative_count = int((df["sentiment"] == Sentiment.NEGATIVE).sum())
    engagement = df["likes"] + df["comments"] + df["shares"]

    logger.debug(
        f"Aggregated {count} mentions: mean sentiment {scores.mean():.3f}, "
        f"{negative_count} negative"
    )

    return WindowAggregate(
        count=count,
        mean_sentiment_score=float(scores.mean()),
        negative_mention_percentage=negative_count / count * 100,
        influencer_count=int(df["is_influencer"].astype(bool).sum()),
        total_reach=int(df["reach"].sum()),
        negative_count=negative_count,
        total_engagement=int(engagement.sum()),
    )


def summarize_mentions(
    mentions: Iterable[Mention],
    keyword_limit: int = 20,
    influencer_limit: int = 10,
    sample_limit: int = 5,
) -> Dict[str, Any]:
    """
    Extract incident context from the mentions that triggered a crisis.

    Args:
        mentions: Current-window mentions
        keyword_limit: Maximum number of keywords to return
        influencer_limit: Maximum number of influencers to return
        sample_limit: Maximum number of sample negative mentions

    Returns:
        Dictionary with platforms, keywords, hashtags, top_influencers and
        sample_mentions
    """
    df = mentions_to_frame(mentions)
    if df.empty:
        return {
            "platforms": [],
            "keywords": [],
            "hashtags": [],
            "top_influencers": [],
            "sample_mentions": [],
        }

    text = " ".join(df["content"].dropna())

    words = [
        word
        for word in KEYWORD_PATTERN.findall(text.lower())
        if word not in STOPWORDS
    ]
    keywords = [word for word, _ in Counter(words).most_common(keyword_limit)]
    hashtags = sorted({tag.lower() for tag in HASHTAG_PATTERN.findall(text)})

    return {
        "platforms": sorted(df["platform"].unique().tolist()),
        "keywords": keywords,
        "hashtags": hashtags,
        "top_influencers": _top_influencers(df, influencer_limit),
        "sample_mentions": _sample_negative_mentions(df, sample_limit),
    }


def _top_influencers(df: pd.DataFrame, limit: int) -> List[Dict[str, Any]]:
    influencers = df[df["is_influencer"].astype(bool)]
    if influencers.empty:
        return []

    # Several mentions by the same influencer collapse into one entry
    grouped = (
        influencers.groupby("author_username")
        .agg(followers=("author_followers", "max"), mention_count=("id", "count"))
        .fillna({"followers": 0})
        .sort_values("followers", ascending=False, kind="mergesort")
        .head(limit)
    )

    return [
        {
            "username": username,
            "followers": int(row.followers),
            "mention_count": int(row.mention_count),
        }
        for username, row in grouped.iterrows()
    ]


def _sample_negative_mentions(df: pd.DataFrame, limit: int) -> List[str]:
    negatives = df[df["sentiment"] == Sentiment.NEGATIVE].copy()
    if negatives.empty:
        return []

    negatives["engagement"] = negatives["likes"] + negatives["comments"] + negatives["shares"]
    ranked = negatives.sort_values("engagement", ascending=False, kind="mergesort")
    return ranked["content"].dropna().head(limit).tolist()
