"""Domain-level exception hierarchy for service and repository layers."""

from __future__ import annotations


class DomainError(Exception):
    """Base class for domain-specific failures."""


class NotFoundError(DomainError):
    """Raised when a requested entity does not exist."""


class ConflictError(DomainError):
    """Raised when a state conflict occurs (e.g. duplicate entries)."""


class ValidationError(DomainError):
    """Raised when input validation fails at the domain/service layer."""


class InvalidCoordinate(ValidationError):
    """Latitude/longitude is missing half of the pair, not a number or out of range."""


class MissingCoordinate(ValidationError):
    """A coordinate is required but none was supplied."""


class AuthenticationError(DomainError):
    """Raised when credentials or an access token are missing or invalid."""


class PermissionDeniedError(DomainError):
    """Raised when an authenticated caller may not touch the resource."""


class InfrastructureError(DomainError):
    """Raised when infrastructure (DB or external service) is unavailable."""
