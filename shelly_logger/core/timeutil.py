from datetime import datetime, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def from_device_timestamp(ts: int) -> datetime:
    """Device clocks report local wall time as unix seconds; keep it naive."""
    return datetime.fromtimestamp(ts, timezone.utc).replace(tzinfo=None)
