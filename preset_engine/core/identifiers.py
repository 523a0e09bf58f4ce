"""
Identifier Validation for Preset Catalogs

Variables and media entries share a single namespace inside one preset
configuration. This module holds the naming rule they all follow and the
declaration-time check that gates every write to the catalog.
"""

import re
import logging
from typing import Iterable, Optional, Set

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class IdentifierError(Exception):
    """Base exception for identifier declaration failures"""

    def __init__(self, name: str, message: Optional[str] = None):
        self.name = name
        super().__init__(message or f"Invalid identifier: {name!r}")


class InvalidFormatError(IdentifierError):
    """Raised when a name does not match the identifier pattern"""

    def __init__(self, name: str):
        super().__init__(
            name,
            f"'{name}' is not a valid name: use letters, digits and underscores, "
            f"not starting with a digit",
        )


class DuplicateNameError(IdentifierError):
    """Raised when a name is already taken by a variable or media entry"""

    def __init__(self, name: str):
        super().__init__(name, f"The name '{name}' is already used by a variable or media entry")


def is_valid_identifier(name) -> bool:
    """Return True if the whole of ``name`` matches the identifier pattern"""
    return isinstance(name, str) and IDENTIFIER_PATTERN.fullmatch(name) is not None


def validate_identifier(name: str, existing: Iterable[str] = ()) -> None:
    """
    Check a new variable or media name against the shared namespace.

    The check is pure: callers add ``name`` to their namespace themselves
    once it has been accepted.

    Args:
        name: Candidate name
        existing: Names already declared across variables and media

    Raises:
        InvalidFormatError: If the name does not match the identifier pattern
        DuplicateNameError: If the name is already declared

    Example:
        >>> validate_identifier("mood", {"era", "poster_ref"})
        >>> validate_identifier("era", {"era"})
        Traceback (most recent call last):
        ...
        DuplicateNameError: The name 'era' is already used by a variable or media entry
    """
    if not is_valid_identifier(name):
        raise InvalidFormatError(name)

    taken: Set[str] = existing if isinstance(existing, (set, frozenset)) else set(existing)
    if name in taken:
        raise DuplicateNameError(name)


class UnknownNameError(IdentifierError):
    """Raised when an edit targets a name that is not declared"""

    def __init__(self, name: str):
        super().__init__(name, f"No variable or media entry named '{name}'")
