"""Platform roles used by lifecycle authorization."""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    """Roles an actor can hold when invoking a status transition."""

    DONOR = "donor"
    SPONSOR = "sponsor"
    ADMIN = "admin"
