"""Placeholder constraint vocabulary.

Each type tag maps to a fixed sub-pattern used for ``{name:type}``
placeholders. The table is closed: adding a tag is a code change, not
configuration. Values are always captured as strings; converting
``int`` captures to numbers is the handler's job.
"""

import re

from waypoint.errors import InvalidConstraintError

DEFAULT_CONSTRAINT = "any"

CONSTRAINTS: dict[str, str] = {
    "int": r"[0-9]+",
    "slug": r"[a-z0-9-]+",
    "uuid": r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}",
    "any": r"[^/]+",
}

_VALIDATORS: dict[str, re.Pattern[str]] = {
    tag: re.compile(pattern) for tag, pattern in CONSTRAINTS.items()
}


def constraint_pattern(tag: str) -> str:
    """Return the regex sub-pattern for a constraint tag.

    Raises ``InvalidConstraintError`` if *tag* is not in the table.
    """
    try:
        return CONSTRAINTS[tag]
    except KeyError:
        known = ", ".join(sorted(CONSTRAINTS))
        msg = f"Unknown constraint type {tag!r}. Expected one of: {known}"
        raise InvalidConstraintError(msg) from None


def satisfies(value: str, tag: str) -> bool:
    """True if the whole of *value* matches the constraint *tag*."""
    return _VALIDATORS[tag].fullmatch(value) is not None
