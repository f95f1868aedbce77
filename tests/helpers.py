from datetime import datetime, timedelta, timezone


def tomorrow() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=1)


def yesterday() -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=1)
