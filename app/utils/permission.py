from fastapi import HTTPException, status

from app.core.constants import RoleEnum
from app.models.attempt import Attempt
from app.schemas.user import UserContext


class PermissionHelper:
    @staticmethod
    def is_admin(context: UserContext) -> bool:
        return context.role == RoleEnum.ADMIN

    @staticmethod
    def owns_attempt(context: UserContext, attempt: Attempt) -> bool:
        return attempt.user_id == context.user_id

    @staticmethod
    def require_admin(context: UserContext, error_message: str = "Only admins can perform this action."):
        if not PermissionHelper.is_admin(context):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=error_message)

    @staticmethod
    def require_attempt_owner(context: UserContext, attempt: Attempt):
        if not PermissionHelper.owns_attempt(context, attempt):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only modify your own attempts."
            )

    @staticmethod
    def require_attempt_view(context: UserContext, attempt: Attempt):
        if PermissionHelper.is_admin(context) or PermissionHelper.owns_attempt(context, attempt):
            return
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own attempts."
        )
