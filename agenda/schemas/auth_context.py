# agenda/schemas/auth_context.py
"""
Who is acting on the schedule.
Resolved once at the API boundary and passed into every core operation.
"""
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, model_validator


class ActorRole(str, Enum):
    OWNER = "owner"
    PROFESSIONAL = "professional"


class AuthContext(BaseModel):
    """Acting-as context: the account owner, or one professional of the account"""
    account_id: UUID
    role: ActorRole = ActorRole.OWNER
    professional_id: Optional[UUID] = None
    can_view_all: bool = False  # professional allowed to see/manage the whole account

    @model_validator(mode="after")
    def professional_needs_id(self):
        if self.role == ActorRole.PROFESSIONAL and self.professional_id is None:
            raise ValueError("professional_id is required when acting as a professional")
        return self

    @classmethod
    def owner(cls, account_id: UUID) -> "AuthContext":
        return cls(account_id=account_id, role=ActorRole.OWNER)

    @classmethod
    def professional(
            cls,
            account_id: UUID,
            professional_id: UUID,
            can_view_all: bool = False
    ) -> "AuthContext":
        return cls(
            account_id=account_id,
            role=ActorRole.PROFESSIONAL,
            professional_id=professional_id,
            can_view_all=can_view_all,
        )

    @property
    def restricted_professional_id(self) -> Optional[UUID]:
        """Professional the actor is limited to, or None when unrestricted"""
        if self.role == ActorRole.PROFESSIONAL and not self.can_view_all:
            return self.professional_id
        return None

    def can_manage(self, professional_id: UUID) -> bool:
        restricted = self.restricted_professional_id
        return restricted is None or restricted == professional_id
