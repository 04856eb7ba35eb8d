import logging
from typing import Optional

from fastapi import APIRouter

from filedrive.core.dependencies import AdminDep, CleanupDep, DbDep
from filedrive.core.errors import InvalidRequestError, NotFoundError, PermissionDeniedError
from filedrive.models.database import valid_row_id
from filedrive.models.user import ROLE_USER, ROLES, User
from filedrive.schemas import (
    AdminUserUpdateRequest,
    BatchBanRequest,
    BatchUpdateResult,
    FileDeletionResult,
    FilePage,
    IdsRequest,
    UserDeletionResult,
    UserOut,
    UserPage,
)
from filedrive.services.cleanup import clean_ids
from filedrive.services.listing import DEFAULT_PAGE_SIZE, list_files, list_users

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def get_target_user(db, user_id: int) -> User:
    user = None
    if valid_row_id(user_id):
        user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.get("/users", response_model=UserPage)
def get_users(
    db: DbDep,
    admin: AdminDep,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    q: Optional[str] = None,
):
    return list_users(db, page=page, page_size=limit, search=q)


@router.patch("/users/batch", response_model=BatchUpdateResult)
def ban_users(body: BatchBanRequest, db: DbDep, admin: AdminDep):
    ids = clean_ids(body.ids, "No user IDs provided")

    # admins are never ban targets
    modified = 0
    if ids:
        modified = (
            db.query(User)
            .filter(User.id.in_(ids), User.role == ROLE_USER, User.banned != body.banned)
            .update({User.banned: body.banned}, synchronize_session=False)
        )
        db.commit()
    logger.info(
        "Admin %s %s %d user(s)", admin.id, "banned" if body.banned else "unbanned", modified
    )
    return BatchUpdateResult(modified_count=modified)


@router.delete("/users/batch", response_model=UserDeletionResult)
def delete_users(body: IdsRequest, admin: AdminDep, cleanup: CleanupDep):
    result = cleanup.delete_users(body.ids)
    logger.info("Admin %s deleted %d user(s)", admin.id, result.deleted_count)
    return result


@router.patch("/users/{user_id}", response_model=UserOut)
def update_user(user_id: int, body: AdminUserUpdateRequest, db: DbDep, admin: AdminDep):
    user = get_target_user(db, user_id)

    if body.banned and user.is_admin:
        raise PermissionDeniedError("Administrators cannot be banned")
    if body.role is not None and body.role not in ROLES:
        raise InvalidRequestError(f"Invalid role: {body.role}")

    if body.name is not None:
        if not body.name.strip():
            raise InvalidRequestError("Name must not be empty")
        user.name = body.name.strip()
    if body.role is not None:
        user.role = body.role
    if body.verified is not None:
        user.verified = body.verified
    if body.banned is not None:
        user.banned = body.banned

    db.commit()
    db.refresh(user)
    logger.info("Admin %s updated user %s", admin.id, user.id)
    return user


@router.delete("/users/{user_id}", response_model=UserDeletionResult)
def delete_user(user_id: int, db: DbDep, admin: AdminDep, cleanup: CleanupDep):
    user = get_target_user(db, user_id)
    if user.is_admin:
        raise PermissionDeniedError("Administrators cannot be deleted")

    result = cleanup.delete_user(user_id)
    logger.info("Admin %s deleted user %s", admin.id, user_id)
    return result


@router.get("/users/{user_id}/files", response_model=FilePage)
def get_user_files(
    user_id: int,
    db: DbDep,
    admin: AdminDep,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    q: Optional[str] = None,
):
    get_target_user(db, user_id)
    return list_files(db, user_id, page=page, page_size=limit, search=q)


@router.delete("/users/{user_id}/files", response_model=FileDeletionResult)
def delete_user_files(user_id: int, body: IdsRequest, db: DbDep, admin: AdminDep, cleanup: CleanupDep):
    get_target_user(db, user_id)
    result = cleanup.delete_files(body.ids, user_id)
    logger.info("Admin %s deleted %d file(s) of user %s", admin.id, result.deleted_count, user_id)
    return result
