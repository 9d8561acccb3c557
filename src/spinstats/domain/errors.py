"""Error taxonomy shared by the domain services and their adapters.

Each error carries the HTTP status an API layer would map it to, so callers can
translate failures without inspecting messages.
"""

from __future__ import annotations

from typing import ClassVar


class SpinstatsError(Exception):
    """Base class for domain failures."""

    status_code: ClassVar[int] = 500


class InvalidArgumentError(SpinstatsError, ValueError):
    """Malformed or missing caller input (blank identifiers, bad chunk sizes)."""

    status_code: ClassVar[int] = 400


class InvalidRangeError(InvalidArgumentError):
    """A date window whose start lies after its end."""


class NotFoundError(SpinstatsError, LookupError):
    """A detail lookup matched zero listening records."""

    status_code: ClassVar[int] = 404


class StorageUnavailableError(SpinstatsError, RuntimeError):
    """The persistence layer failed or timed out."""

    status_code: ClassVar[int] = 500


class ProviderUnavailableError(SpinstatsError, RuntimeError):
    """An external history provider failed or answered with an error."""

    status_code: ClassVar[int] = 502


__all__ = [
    "InvalidArgumentError",
    "InvalidRangeError",
    "NotFoundError",
    "ProviderUnavailableError",
    "SpinstatsError",
    "StorageUnavailableError",
]
