"""Timestamp helpers.

Post ids in org-social documents are timestamps. Both RFC 3339 offsets
(``+02:00``) and compact offsets (``+0200``) occur in the wild.
"""

from datetime import datetime, timezone
from typing import Optional

COMPACT_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a post id / poll deadline into an aware datetime.

    Returns None for empty or unparseable input. Naive values are taken as UTC
    so every returned datetime is comparable with every other.
    """
    if not value:
        return None

    text = value.strip()
    # fromisoformat rejects a trailing "Z" before Python 3.11
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = datetime.strptime(text, COMPACT_FORMAT)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def current_timestamp() -> str:
    """Current local time with offset, second precision, RFC 3339."""
    return datetime.now().astimezone().replace(microsecond=0).isoformat()
