"""
Error types raised by the importers and the graph manager.

All of them derive from ValueError so callers that already map
ValueError to a client error (the API layer) keep working.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .schema import SchemaError


class ServiceMapError(ValueError):
    """Base class for service map errors."""


class ImportParseError(ServiceMapError):
    """Input is not well-formed JSON."""

    def __init__(self, message: str = "Invalid JSON: could not parse the input."):
        super().__init__(message)


class StructuralError(ServiceMapError):
    """Well-formed JSON with missing or mistyped containers or fields."""


class SchemaValidationError(ServiceMapError):
    """One or more service-schema violations, reported together."""

    def __init__(self, errors: list["SchemaError"]):
        self.errors = list(errors)
        lines = [f"{e.path}: {e.message}" for e in self.errors]
        super().__init__("Validation errors:\n" + "\n".join(lines))


class DanglingReferenceError(ServiceMapError):
    """An edge or integration names a node that does not exist."""

    def __init__(self, message: str, owner_id: str, missing_id: str):
        self.owner_id = owner_id
        self.missing_id = missing_id
        super().__init__(message)


class UnknownTypeError(ServiceMapError):
    """A node or integration type is not in the registry."""
