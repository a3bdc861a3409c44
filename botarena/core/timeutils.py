"""
Naive UTC timestamps, matching the DATETIME columns of the schema.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
