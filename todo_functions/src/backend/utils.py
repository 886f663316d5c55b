from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from .errors import ValidationError

TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
FALSE_VALUES = frozenset({"false", "0", "no", "off"})


# PUBLIC_INTERFACE
def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
def parse_bool_param(value: Any, name: str = "done") -> bool:
    """
    Parse a boolean from a bool or a query-string value.

    Accepts true/1/yes/on and false/0/no/off (case-insensitive).
    Raises ValidationError for anything else.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v in TRUE_VALUES:
            return True
        if v in FALSE_VALUES:
            return False
    raise ValidationError(f"Invalid request: {name} must be a boolean")


# PUBLIC_INTERFACE
def clean_text(value: Optional[str]) -> Optional[str]:
    """Strip a text value, returning None when it is missing or blank."""
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def missing_params(params: Mapping[str, Any], *names: str) -> List[str]:
    """Return the names whose values are absent or blank in params."""
    return [n for n in names if clean_text(params.get(n)) is None]
