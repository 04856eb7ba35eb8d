"""FastAPI dependencies shared by the routers."""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from filedrive.core.config import Settings, get_settings
from filedrive.core.errors import AuthenticationError, PermissionDeniedError
from filedrive.core.mail import Mailer
from filedrive.core.security import decode_session_token
from filedrive.models.database import get_db
from filedrive.models.user import User
from filedrive.services.cleanup import CleanupOrchestrator
from filedrive.services.quota import QuotaCalculator
from filedrive.storage.blob import S3BlobStore


# --- helper: get current logged in user id from cookie ---
def get_current_user_id(request: Request) -> Optional[int]:
    token = request.cookies.get(get_settings().cookie_name)
    if not token:
        return None
    return decode_session_token(token)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    user_id = get_current_user_id(request)
    if user_id is None:
        raise AuthenticationError()
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AuthenticationError()
    if user.banned:
        raise PermissionDeniedError("Your account has been banned.")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise PermissionDeniedError()
    return user


@lru_cache
def _blob_store() -> S3BlobStore:
    return S3BlobStore.from_settings(get_settings())


def get_blob_store() -> S3BlobStore:
    return _blob_store()


def get_mailer(settings: Settings = Depends(get_settings)) -> Mailer:
    return Mailer(settings)


def get_cleanup_orchestrator(
    db: Session = Depends(get_db),
    blob_store=Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
) -> CleanupOrchestrator:
    return CleanupOrchestrator(db, blob_store, max_workers=settings.blob_delete_concurrency)


def get_quota_calculator(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> QuotaCalculator:
    return QuotaCalculator(db, max_bytes=settings.max_storage_bytes)


DbDep = Annotated[Session, Depends(get_db)]
CurrentUserDep = Annotated[User, Depends(get_current_user)]
AdminDep = Annotated[User, Depends(require_admin)]
BlobStoreDep = Annotated[S3BlobStore, Depends(get_blob_store)]
MailerDep = Annotated[Mailer, Depends(get_mailer)]
CleanupDep = Annotated[CleanupOrchestrator, Depends(get_cleanup_orchestrator)]
QuotaDep = Annotated[QuotaCalculator, Depends(get_quota_calculator)]
