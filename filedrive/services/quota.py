from sqlalchemy import func
from sqlalchemy.orm import Session

from filedrive.core.errors import QuotaExceededError
from filedrive.models.file import FileMeta
from filedrive.schemas import StorageUsage


class QuotaCalculator:
    """Reports how much of a fixed byte ceiling an account is using."""

    def __init__(self, db: Session, max_bytes: int):
        self.db = db
        self.max_bytes = max_bytes

    def used_bytes(self, owner_id: int) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(func.coalesce(FileMeta.size, 0)), 0))
            .filter(FileMeta.owner_id == owner_id)
            .scalar()
        )
        return int(total or 0)

    def get_usage(self, owner_id: int) -> StorageUsage:
        used = self.used_bytes(owner_id)
        return StorageUsage(
            used_bytes=used,
            remaining_bytes=max(0, self.max_bytes - used),
            max_bytes=self.max_bytes,
            used_percent=used_percent(used, self.max_bytes),
        )

    def ensure_capacity(self, owner_id: int, incoming_bytes: int) -> None:
        used = self.used_bytes(owner_id)
        if used + incoming_bytes > self.max_bytes:
            raise QuotaExceededError(used, incoming_bytes, self.max_bytes)


def used_percent(used_bytes: int, max_bytes: int) -> int:
    if max_bytes <= 0:
        return 0
    # round half up in integer arithmetic, so 0.5% reports as 1
    percent = (used_bytes * 200 + max_bytes) // (2 * max_bytes)
    return max(0, min(100, percent))
