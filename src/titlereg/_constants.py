"""Internal constants shared across the library."""

import re

#: Keys starting with this prefix belong to the registry, never to a title.
RESERVED_PREFIX = "_"

DEFAULT_INDEX_KEY = "_titleindex"
#: Key the original ledger code used for its smoke-test integer.
DEFAULT_LEGACY_KEY = "abc"

DEFAULT_CAS_MAX_ATTEMPTS = 5
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_READ_RETRIES = 2

# Decimal integer as accepted by the ledger's init call: optional sign, ASCII digits only.
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def is_reserved_key(key: str) -> bool:
    """Return ``True`` when *key* is reserved for registry bookkeeping."""
    return key.startswith(RESERVED_PREFIX)


def parse_integer(text: str) -> int:
    """Parse *text* as a plain decimal integer.

    Unlike :func:`int`, surrounding whitespace and ``_`` separators are
    rejected.  Raises :class:`ValueError` for anything else.
    """
    if not _INTEGER_RE.fullmatch(text):
        raise ValueError(f"not a decimal integer: {text!r}")
    return int(text)
