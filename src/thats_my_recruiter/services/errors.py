"""Exceptions raised by the service adapters."""

from __future__ import annotations


class ServiceError(RuntimeError):
    """Base class for recoverable failures of an external collaborator."""


class ServiceUnavailableError(ServiceError):
    """The remote service could not be reached, errored, or timed out."""


class MalformedResponseError(ServiceError):
    """The generative service answered with something we cannot parse."""

    def __init__(self, message: str, *, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class StoreError(ServiceError):
    """A profile store or object store operation failed."""


class RecordNotFoundError(StoreError):
    """No record exists for the requested id."""


class InvalidTransitionError(StoreError):
    """A conversation status change that is not allowed."""


class AuthError(ServiceError):
    """Bad credentials, duplicate account, or an unconfirmed email address."""


__all__ = [
    "AuthError",
    "InvalidTransitionError",
    "MalformedResponseError",
    "RecordNotFoundError",
    "ServiceError",
    "ServiceUnavailableError",
    "StoreError",
]
