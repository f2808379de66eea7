# ============================================================================
# FILE: agenda/api/dependencies.py
# Acting-as context for scheduling endpoints
# ============================================================================
"""
Authentication happens upstream (gateway / session layer). It forwards the
resolved identity in headers, which are turned into an AuthContext here,
once per request.
"""
from typing import Optional
from uuid import UUID

from fastapi import Header, HTTPException, status

from agenda.schemas.auth_context import AuthContext


def get_auth_context(
        x_account_id: Optional[UUID] = Header(None, description="Owning account of the caller"),
        x_professional_id: Optional[UUID] = Header(None, description="Set when the caller is a professional"),
        x_view_all: bool = Header(False, description="Professional may see the whole account")
) -> AuthContext:
    """Build the acting-as context from forwarded identity headers."""
    if x_account_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing account context"
        )

    if x_professional_id is not None:
        return AuthContext.professional(x_account_id, x_professional_id, can_view_all=x_view_all)

    return AuthContext.owner(x_account_id)
