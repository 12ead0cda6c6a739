# app/schemas/identity.py
from __future__ import annotations

from typing import Any, Mapping

from pydantic import Field

from app.schemas.base import CamelModel


class Permissions(CamelModel):
    """
    Fixed capability set attached to an identity. The core never computes
    these flags; it only reads them.
    """

    can_view: bool = False
    can_edit: bool = False
    can_manage_agenda: bool = False
    can_manage_participants: bool = False
    can_create_meetings: bool = False
    can_manage_users: bool = False
    can_vote: bool = False
    can_see_vote_results: bool = False

    @classmethod
    def from_stored(cls, raw: Mapping[str, Any] | None) -> "Permissions":
        # Unknown keys in the stored JSON are ignored.
        if not raw:
            return cls()
        known = {
            key: bool(value)
            for key, value in raw.items()
            if key in cls.model_fields or key in _ALIASES
        }
        return cls.model_validate(known)

    def allows(self, capability: str) -> bool:
        """
        Check a capability by its camelCase (`canVote`) or snake_case name.
        """
        field_name = _ALIASES.get(capability, capability)
        if field_name not in type(self).model_fields:
            raise KeyError(f"Unknown capability '{capability}'")
        return bool(getattr(self, field_name))


_ALIASES = {
    field.alias: name
    for name, field in Permissions.model_fields.items()
    if field.alias
}


class Identity(CamelModel):
    """
    Already-resolved caller identity supplied to every core operation.
    """

    user_id: int = Field(..., description="Identifier of the calling user.")
    company_id: int | None = Field(
        None,
        description="Organization of the calling user, if any.",
    )
    permissions: Permissions = Field(default_factory=Permissions)
