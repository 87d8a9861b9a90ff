"""Domain layer: base exceptions.

No dependencies on infrastructure or presentation.
"""

from menuboard.domain.exceptions import (
    MenuboardException,
    ResourceNotFoundException,
    ValidationException,
)

__all__ = [
    "MenuboardException",
    "ResourceNotFoundException",
    "ValidationException",
]
