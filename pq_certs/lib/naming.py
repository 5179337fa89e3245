"""Directory naming for new intermediates and clients."""

import re
from datetime import datetime

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

_WHITESPACE = re.compile(r"\s")
_UNSAFE = re.compile(r"[^A-Za-z0-9_]")


def sanitize_label(label: str) -> str:
    """Make a free-text label safe for use as a directory name.

    Whitespace becomes ``_`` and every other character outside
    ``[A-Za-z0-9_]`` is dropped. Applying it twice gives the same result.
    """
    return _UNSAFE.sub("", _WHITESPACE.sub("_", label))


def make_entity_id(label: str, now: datetime | None = None) -> str:
    """Return ``<sanitized label>_<YYYYMMDD_HHMMSS>``.

    Resolution is one second: the same label twice within a second yields the
    same identifier, so callers allocating directories must check for a clash.
    """
    if now is None:
        now = datetime.now()
    return f"{sanitize_label(label)}_{now.strftime(TIMESTAMP_FORMAT)}"
