"""Row parsing helpers shared by the store-backed repositories."""

from datetime import UTC, datetime

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def parse_timestamp(raw: object) -> datetime | None:
    """Parse a timestamp column returned by the store."""
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, str) and raw:
        return datetime.fromisoformat(raw)
    return None
