import logging

from fastapi import APIRouter, Response

from filedrive.core.dependencies import CleanupDep, CurrentUserDep, DbDep, QuotaDep
from filedrive.core.errors import AuthenticationError, InvalidRequestError
from filedrive.core.security import MIN_PASSWORD_LENGTH, hash_password, verify_password
from filedrive.routers.auth import clear_session_cookie
from filedrive.schemas import ProfileUpdateRequest, StorageUsage, UserDeletionResult, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get("/profile", response_model=UserOut)
def get_profile(user: CurrentUserDep):
    return user


@router.patch("/profile", response_model=UserOut)
def update_profile(body: ProfileUpdateRequest, db: DbDep, user: CurrentUserDep):
    if body.name and body.name.strip():
        user.name = body.name.strip()

    if body.new_password:
        if not body.current_password:
            raise InvalidRequestError("Current password is required to change password")
        if not verify_password(body.current_password, user.password):
            raise AuthenticationError("Current password is incorrect")
        if len(body.new_password) < MIN_PASSWORD_LENGTH:
            raise InvalidRequestError(
                f"New password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        user.password = hash_password(body.new_password)

    db.commit()
    db.refresh(user)
    return user


@router.delete("/profile", response_model=UserDeletionResult)
def delete_account(response: Response, user: CurrentUserDep, cleanup: CleanupDep):
    user_id = user.id
    result = cleanup.delete_user(user_id)
    logger.info("User %s deleted their account", user_id)
    clear_session_cookie(response)
    return result


@router.get("/storage", response_model=StorageUsage)
def get_storage(user: CurrentUserDep, quota: QuotaDep):
    return quota.get_usage(user.id)
