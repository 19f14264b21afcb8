"""
security.py
-----------
Purpose:
    Admin account security actions.

Usage:
    DELETE /api/security/users/{user_id} - Soft-delete a member
"""

from fastapi import APIRouter, Depends

from underground.auth.verify import require_current_admin
from underground.dependencies import get_member_service
from underground.models.api.member_response import MessageResponse
from underground.models.domain.user_domain import Principal
from underground.services.member_service import MemberService

router = APIRouter(prefix="/api/security", tags=["security"])


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def soft_delete_user(
    user_id: str,
    principal: Principal = Depends(require_current_admin),
    members: MemberService = Depends(get_member_service),
):
    await members.soft_delete_user(user_id, principal.id)
    return MessageResponse(message="User account deleted.")
