"""
Database seeder script for the Crisis Monitor

This script populates the database with sample mentions for development:
a quiet, mostly neutral hour followed by a burst of negative mentions.
"""

import random
from datetime import datetime, timedelta, timezone

from . import SessionLocal
from .enums import Sentiment
from .models import ListeningMention

PLATFORMS = ["twitter", "facebook", "instagram", "reddit"]

NEUTRAL_TEXTS = [
    "Picked up the new model today, setup was straightforward.",
    "Anyone know when the spring collection launches?",
    "Customer support answered my question within the hour.",
    "Shipping took about three days, pretty standard.",
]

NEGATIVE_TEXTS = [
    "Checkout keeps failing, this outage is ridiculous #outage",
    "Charged twice for one order and support is silent #refund",
    "Another outage today, the app will not load at all #outage",
    "Worst service experience ever, cancelling my subscription",
]


def _mention(workspace_id, published_at, sentiment, text, influencer=False):
    username = f"creator_{random.randint(100, 999)}" if influencer else f"user_{random.randint(1000, 9999)}"
    return ListeningMention(
        workspace_id=workspace_id,
        platform=random.choice(PLATFORMS),
        sentiment=sentiment,
        content=text,
        published_at=published_at,
        likes=random.randint(0, 500),
        comments=random.randint(0, 80),
        shares=random.randint(0, 120),
        reach=random.randint(100, 50000),
        is_influencer=influencer,
        author_username=username,
        author_followers=random.randint(50000, 2000000) if influencer else random.randint(10, 5000),
    )


def seed_sample_mentions(workspace_id="demo", baseline_count=12, burst_count=60):
    """Seed a quiet baseline hour and a negative burst in the most recent hour"""
    # published_at is stored as naive UTC
    now = datetime.now(timezone.utc).replace(tzinfo=None)

    mentions = []
    for _ in range(baseline_count):
        published_at = now - timedelta(minutes=random.randint(61, 119))
        mentions.append(
            _mention(workspace_id, published_at, Sentiment.NEUTRAL, random.choice(NEUTRAL_TEXTS))
        )

    for i in range(burst_count):
        published_at = now - timedelta(minutes=random.randint(1, 59))
        mentions.append(
            _mention(
                workspace_id,
                published_at,
                Sentiment.NEGATIVE,
                random.choice(NEGATIVE_TEXTS),
                influencer=i % 15 == 0,
            )
        )

    db = SessionLocal()
    try:
        db.add_all(mentions)
        db.commit()
        print(f"✅ Seeded {len(mentions)} sample mentions for workspace '{workspace_id}'")
    except Exception as e:
        print(f"❌ Error seeding mentions: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def run_all_seeds():
    """Run all seed functions in order"""
    print("🌱 Starting database seeding...")

    seed_sample_mentions()

    print("✅ Database seeding completed!")


if __name__ == "__main__":
    run_all_seeds()
