# app/core/errors.py
from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict


class DomainError(Exception):
    """
    Base class for every failure the meeting session core reports to callers.

    Each subclass carries a stable machine-readable `kind` and the HTTP status
    it maps to, so both the REST layer and the WebSocket layer can render the
    same structured error without knowing the concrete type.
    """

    kind: str = "domain_error"
    status_code: int = HTTPStatus.BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "detail": self.message}


class ValidationError(DomainError):
    """Malformed input rejected before any write."""

    kind = "validation_error"
    status_code = HTTPStatus.BAD_REQUEST


class InvalidOptionError(DomainError):
    """A ballot named an option the vote does not declare."""

    kind = "invalid_option"
    status_code = HTTPStatus.BAD_REQUEST


class InvalidProxyTargetError(DomainError):
    """A mandate was given to an organization that cannot receive it."""

    kind = "invalid_proxy_target"
    status_code = HTTPStatus.BAD_REQUEST


class VoteClosedError(DomainError):
    """A ballot was cast on a vote that no longer accepts responses."""

    kind = "vote_closed"
    status_code = HTTPStatus.CONFLICT


class NotFoundError(DomainError):
    """An id did not resolve to an existing meeting/item/vote/participant."""

    kind = "not_found"
    status_code = HTTPStatus.NOT_FOUND


class PermissionDeniedError(DomainError):
    """The caller's identity lacks the capability required for the action."""

    kind = "permission_denied"
    status_code = HTTPStatus.FORBIDDEN


class PersistenceError(DomainError):
    """The store failed; nothing was applied and nothing was broadcast."""

    kind = "persistence_error"
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
