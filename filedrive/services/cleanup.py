"""Deletion of files and users together with their external resources.

Each file row may own an external resource: a blob in the object store
(``public_id``) or, for rows written by the local-disk variant, a file on disk
(``path``). Deleting rows always tries to free that resource first. Failing to
free it never aborts the batch. The failure is logged and reported per item,
and the row is removed anyway.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from filedrive.core.errors import (
    BlobStoreError,
    InvalidRequestError,
    NotFoundError,
    WrongResourceKindError,
)
from filedrive.models.database import valid_row_id
from filedrive.models.file import FileMeta
from filedrive.models.user import ROLE_USER, User
from filedrive.schemas import CleanupOutcome, FileDeletionResult, UserDeletionResult
from filedrive.storage.blob import candidate_kinds

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


@dataclass(frozen=True)
class _ExternalRef:
    """Plain copy of the columns cleanup needs, safe to hand to worker threads."""

    id: int
    public_id: Optional[str]
    resource_type: Optional[str]
    mime_type: Optional[str]
    path: Optional[str]

    @classmethod
    def of(cls, row: FileMeta) -> "_ExternalRef":
        return cls(row.id, row.public_id, row.resource_type, row.mime_type, row.path)


def safe_destroy(blob_store, public_id: str, resource_type: Optional[str], mime_type: Optional[str]) -> CleanupOutcome:
    """Destroy a blob, walking the candidate kinds until one is accepted.

    Only a wrong-kind rejection moves on to the next kind. Any other error
    ends the attempt for this blob.
    """
    last_error = None
    for kind in candidate_kinds(resource_type, mime_type):
        try:
            blob_store.destroy(public_id, kind)
        except WrongResourceKindError as exc:
            last_error = exc
            continue
        except BlobStoreError as exc:
            return CleanupOutcome(id=0, ok=False, detail=str(exc), resource_kind=kind.value)
        return CleanupOutcome(id=0, ok=True, detail="deleted", resource_kind=kind.value)
    return CleanupOutcome(
        id=0,
        ok=False,
        detail=f"not found under any resource kind ({last_error})",
    )


class CleanupOrchestrator:
    """Deletes file and user rows after freeing their external resources."""

    def __init__(self, db: Session, blob_store, max_workers: int = DEFAULT_MAX_WORKERS):
        self.db = db
        self.blob_store = blob_store
        self.max_workers = max(1, max_workers)

    # --- files ---

    def delete_files(self, ids: Iterable[int], owner_id: int) -> FileDeletionResult:
        """Delete the given files of one owner.

        Ids that do not exist or belong to someone else are ignored, so a
        repeated call reports ``deleted_count == 0``.

        Raises:
            InvalidRequestError: if ``ids`` is empty.
            SQLAlchemyError: if the database fails; nothing is rolled back
                on the blob side.
        """
        ids = clean_ids(ids, "No file IDs provided")
        if not ids:
            return FileDeletionResult(deleted_count=0)

        rows = (
            self.db.query(FileMeta)
            .filter(FileMeta.id.in_(ids), FileMeta.owner_id == owner_id)
            .all()
        )
        if not rows:
            return FileDeletionResult(deleted_count=0)

        outcomes = self._cleanup_external(rows)
        deleted = self._delete_rows(
            self.db.query(FileMeta).filter(
                FileMeta.id.in_([row.id for row in rows]),
                FileMeta.owner_id == owner_id,
            )
        )
        self._commit()

        logger.info("Deleted %d file(s) of user %s", deleted, owner_id)
        return FileDeletionResult(deleted_count=deleted, per_item_cloud_results=outcomes)

    # --- users ---

    def delete_user(self, user_id: int) -> UserDeletionResult:
        """Delete one user and everything they own.

        Admin protection is left to the caller.
        """
        user = None
        if valid_row_id(user_id):
            user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError("User not found")
        return self._delete_owners([user.id])

    def delete_users(self, ids: Iterable[int]) -> UserDeletionResult:
        """Delete a batch of users; ADMIN accounts in the batch are skipped."""
        ids = clean_ids(ids, "No user IDs provided")
        if not ids:
            return UserDeletionResult(deleted_count=0, files_deleted_count=0)

        user_ids = [
            uid
            for (uid,) in self.db.query(User.id)
            .filter(User.id.in_(ids), User.role == ROLE_USER)
            .all()
        ]
        if not user_ids:
            return UserDeletionResult(deleted_count=0, files_deleted_count=0)
        return self._delete_owners(user_ids)

    def _delete_owners(self, user_ids: List[int]) -> UserDeletionResult:
        files = self.db.query(FileMeta).filter(FileMeta.owner_id.in_(user_ids)).all()
        outcomes = self._cleanup_external(files)

        files_deleted = self._delete_rows(
            self.db.query(FileMeta).filter(FileMeta.owner_id.in_(user_ids))
        )
        users_deleted = self._delete_rows(
            self.db.query(User).filter(User.id.in_(user_ids))
        )
        self._commit()

        logger.info(
            "Deleted %d user(s) and %d file(s)", users_deleted, files_deleted
        )
        return UserDeletionResult(
            deleted_count=users_deleted,
            files_deleted_count=files_deleted,
            per_item_cloud_results=outcomes,
        )

    # --- helpers ---

    def _cleanup_external(self, rows: List[FileMeta]) -> List[CleanupOutcome]:
        refs = [_ExternalRef.of(row) for row in rows]
        if not refs:
            return []
        if len(refs) == 1:
            return [self._cleanup_one(refs[0])]
        workers = min(self.max_workers, len(refs))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(self._cleanup_one, refs))

    def _cleanup_one(self, ref: _ExternalRef) -> CleanupOutcome:
        if ref.public_id:
            try:
                outcome = safe_destroy(self.blob_store, ref.public_id, ref.resource_type, ref.mime_type)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unexpected error deleting blob %s", ref.public_id)
                outcome = CleanupOutcome(id=0, ok=False, detail=str(exc))
            outcome.id = ref.id
            if not outcome.ok:
                logger.warning(
                    "Failed to delete blob %s of file %s: %s",
                    ref.public_id, ref.id, outcome.detail,
                )
            return outcome

        if ref.path:
            try:
                os.unlink(ref.path)
            except OSError as exc:
                logger.warning("Failed to delete file %s: %s", ref.path, exc)
                return CleanupOutcome(id=ref.id, ok=False, detail=str(exc))
            return CleanupOutcome(id=ref.id, ok=True, detail="unlinked")

        return CleanupOutcome(id=ref.id, ok=True, detail="no external resource")

    def _delete_rows(self, query) -> int:
        try:
            return query.delete(synchronize_session=False)
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise


def clean_ids(ids: Iterable[int], message: str) -> List[int]:
    """Validate and de-duplicate requested ids, keeping their order.

    Ids outside the 64-bit key range cannot match a row; they are dropped
    rather than sent to the driver, so the result may be empty even though
    the request was not.

    Raises:
        InvalidRequestError: if ``ids`` is empty or holds a non-integer.
    """
    if ids is None:
        raise InvalidRequestError(message)
    cleaned = []
    seen = set()
    for value in ids:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidRequestError(f"Invalid id: {value!r}")
        seen_before = value in seen
        seen.add(value)
        if not seen_before and valid_row_id(value):
            cleaned.append(value)
    if not seen:
        raise InvalidRequestError(message)
    return cleaned
