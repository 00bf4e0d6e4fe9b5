"""Caller identity parsing for requests forwarded by the upstream auth gateway."""

from __future__ import annotations

from uuid import UUID

ACTOR_HEADER = "x-user-id"


class MissingActorError(PermissionError):
    """Raised when the authenticated caller id header is absent."""


class InvalidActorError(PermissionError):
    """Raised when the caller id header is not a UUID."""


def extract_actor_user_id(header_value: str | None) -> UUID:
    """Parse the `X-User-Id` header set by the gateway after authentication."""

    if header_value is None or not header_value.strip():
        raise MissingActorError("missing caller identity")

    try:
        return UUID(header_value.strip())
    except ValueError as exc:
        raise InvalidActorError("invalid caller identity header") from exc
