"""Paginated, searchable listings of users and files.

User pages carry per-user file statistics computed in the same query through
an outer join on a grouped subquery, so listing N users costs one round trip
plus the population counters.
"""

from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from filedrive.models.file import FileMeta
from filedrive.models.user import ROLE_ADMIN, User
from filedrive.schemas import AdminUserRow, FileOut, FilePage, UserPage

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def normalize_paging(page: Optional[int], page_size: Optional[int]) -> Tuple[int, int]:
    """Clamp paging input instead of rejecting it."""
    page = max(1, page or 1)
    if page_size is None:
        page_size = DEFAULT_PAGE_SIZE
    page_size = max(1, min(MAX_PAGE_SIZE, page_size))
    return page, page_size


def like_pattern(search: str) -> str:
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def list_users(db: Session, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE, search: Optional[str] = None) -> UserPage:
    page, page_size = normalize_paging(page, page_size)

    stats = (
        db.query(
            FileMeta.owner_id.label("owner_id"),
            func.count(FileMeta.id).label("file_count"),
            func.coalesce(func.sum(func.coalesce(FileMeta.size, 0)), 0).label("total_size"),
        )
        .group_by(FileMeta.owner_id)
        .subquery()
    )

    query = db.query(User)
    search = (search or "").strip()
    if search:
        pattern = like_pattern(search)
        query = query.filter(
            User.name.ilike(pattern, escape="\\") | User.email.ilike(pattern, escape="\\")
        )

    total = query.count()
    offset = (page - 1) * page_size

    rows = []
    if offset < total:
        rows = (
            query.outerjoin(stats, stats.c.owner_id == User.id)
            .add_columns(stats.c.file_count, stats.c.total_size)
            .order_by(User.created_at.desc(), User.id.desc())
            .offset(offset)
            .limit(page_size)
            .all()
        )

    users = []
    for user, file_count, total_size in rows:
        row = AdminUserRow.model_validate(user)
        if user.role != ROLE_ADMIN:
            row.file_count = int(file_count or 0)
            row.total_size_bytes = int(total_size or 0)
        users.append(row)

    # whole-population counters, independent of the search filter
    admin_count = db.query(func.count(User.id)).filter(User.role == ROLE_ADMIN).scalar()
    verified_count = db.query(func.count(User.id)).filter(User.verified.is_(True)).scalar()
    banned_count = db.query(func.count(User.id)).filter(User.banned.is_(True)).scalar()

    return UserPage(
        rows=users,
        total=total,
        admin_count=admin_count or 0,
        verified_count=verified_count or 0,
        banned_count=banned_count or 0,
        page=page,
        per_page=page_size,
    )


def list_files(
    db: Session,
    owner_id: int,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    search: Optional[str] = None,
) -> FilePage:
    page, page_size = normalize_paging(page, page_size)

    query = db.query(FileMeta).filter(FileMeta.owner_id == owner_id)
    search = (search or "").strip()
    if search:
        query = query.filter(FileMeta.filename.ilike(like_pattern(search), escape="\\"))

    total = query.count()
    offset = (page - 1) * page_size

    # past the last page; the offset may not even fit the driver's integers
    files = []
    if offset < total:
        files = (
            query.order_by(FileMeta.created_at.desc(), FileMeta.id.desc())
            .offset(offset)
            .limit(page_size)
            .all()
        )

    return FilePage(
        rows=[FileOut.model_validate(f) for f in files],
        total=total,
        page=page,
        per_page=page_size,
    )
