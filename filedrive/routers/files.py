import io
import logging
import os
import time
import zipfile
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, File as FastAPIFile, UploadFile, status
from fastapi.responses import FileResponse, StreamingResponse

from filedrive.core.dependencies import BlobStoreDep, CleanupDep, CurrentUserDep, DbDep, QuotaDep
from filedrive.core.errors import BlobStoreError, InvalidRequestError, NotFoundError
from filedrive.models.database import valid_row_id
from filedrive.models.file import FileMeta
from filedrive.schemas import FileDeletionResult, FileOut, FilePage, IdsRequest, RenameRequest
from filedrive.services.cleanup import clean_ids
from filedrive.services.listing import DEFAULT_PAGE_SIZE, list_files

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])


def content_disposition(filename: str) -> str:
    fallback = filename.encode("ascii", "ignore").decode("ascii").replace('"', "") or "download"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def get_owned_file(db, file_id: int, owner_id: int) -> FileMeta:
    if not valid_row_id(file_id):
        raise NotFoundError("File not found")
    file = (
        db.query(FileMeta)
        .filter(FileMeta.id == file_id, FileMeta.owner_id == owner_id)
        .first()
    )
    if not file:
        raise NotFoundError("File not found")
    return file


def read_file_bytes(blob_store, file: FileMeta):
    """Return (bytes, content type) for a stored file."""
    if file.public_id:
        return blob_store.fetch(file.public_id, file.resource_type, file.mime_type)
    if file.path:
        try:
            return Path(file.path).read_bytes(), file.mime_type or "application/octet-stream"
        except OSError as exc:
            raise BlobStoreError(f"Reading '{file.path}' failed: {exc}") from exc
    raise BlobStoreError("File content not available")


def archive_name(name: str, used: set) -> str:
    """Pick a name not yet in the archive: `a.txt`, then `a (1).txt`, `a (2).txt`..."""
    stem, ext = os.path.splitext(name)
    candidate = name
    n = 0
    while candidate.lower() in used:
        n += 1
        candidate = f"{stem} ({n}){ext}"
    used.add(candidate.lower())
    return candidate


# --- show user's files ---
@router.get("", response_model=FilePage)
def get_files(
    db: DbDep,
    user: CurrentUserDep,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    q: Optional[str] = None,
):
    return list_files(db, user.id, page=page, page_size=limit, search=q)


# --- upload new files ---
@router.post("", response_model=List[FileOut], status_code=status.HTTP_201_CREATED)
async def upload_files(
    db: DbDep,
    user: CurrentUserDep,
    blob_store: BlobStoreDep,
    quota: QuotaDep,
    files: List[UploadFile] = FastAPIFile(...),
):
    if not files:
        raise InvalidRequestError("No files")

    # Read file content
    contents = [(upload, await upload.read()) for upload in files]
    quota.ensure_capacity(user.id, sum(len(content) for _, content in contents))

    saved = []
    for upload, content in contents:
        filename = upload.filename or "untitled"
        blob = blob_store.upload(user.id, filename, content, upload.content_type)

        # Save metadata in DB
        meta = FileMeta(
            owner_id=user.id,
            filename=filename,
            original_name=filename,
            mime_type=upload.content_type,
            resource_type=blob.resource_kind.value,
            url=blob.url,
            public_id=blob.public_id,
            size=blob.size,
        )
        db.add(meta)
        db.commit()
        db.refresh(meta)
        saved.append(meta)
        logger.info("User %s uploaded file %s (%d bytes)", user.id, meta.id, meta.size)

    return saved


# --- delete several files ---
@router.delete("/batch", response_model=FileDeletionResult)
def delete_files(body: IdsRequest, user: CurrentUserDep, cleanup: CleanupDep):
    return cleanup.delete_files(body.ids, user.id)


# --- download several files as one archive ---
@router.post("/batch/download")
def download_files(body: IdsRequest, db: DbDep, user: CurrentUserDep, blob_store: BlobStoreDep):
    ids = clean_ids(body.ids, "No file IDs provided")

    files = []
    if ids:
        files = (
            db.query(FileMeta)
            .filter(FileMeta.id.in_(ids), FileMeta.owner_id == user.id)
            .order_by(FileMeta.id)
            .all()
        )
    if not files:
        raise NotFoundError("No files found")

    if len(files) == 1:
        file = files[0]
        name = file.original_name or file.filename
        if not name.lower().endswith(".zip"):
            return _stream_file(blob_store, file)

    buffer = io.BytesIO()
    used_names = set()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_STORED) as archive:
        for file in files:
            name = archive_name(file.original_name or file.filename or f"file-{file.id}", used_names)
            try:
                content, _ = read_file_bytes(blob_store, file)
            except BlobStoreError as exc:
                logger.warning("Failed to fetch file %s for archive: %s", file.id, exc)
                archive.writestr(f"ERROR-{name}.txt", f"Failed to fetch {name}\n")
                continue
            archive.writestr(name, content)

    buffer.seek(0)
    return StreamingResponse(
        buffer,
        media_type="application/zip",
        headers={
            "Content-Disposition": content_disposition(f"files-{int(time.time() * 1000)}.zip"),
            "Cache-Control": "no-cache",
        },
    )


# --- download a file ---
@router.get("/{file_id}")
def download_file(file_id: int, db: DbDep, user: CurrentUserDep, blob_store: BlobStoreDep):
    file = get_owned_file(db, file_id, user.id)
    return _stream_file(blob_store, file)


def _stream_file(blob_store, file: FileMeta):
    name = file.original_name or file.filename
    if not file.public_id and file.path:
        if not Path(file.path).is_file():
            raise NotFoundError("File missing on disk")
        return FileResponse(
            file.path,
            media_type=file.mime_type or "application/octet-stream",
            headers={"Content-Disposition": content_disposition(name)},
        )

    # Fetch object from the blob store
    try:
        file_bytes, content_type = read_file_bytes(blob_store, file)
    except BlobStoreError:
        raise NotFoundError("File missing in cloud")

    return StreamingResponse(
        io.BytesIO(file_bytes),
        media_type=content_type,
        headers={"Content-Disposition": content_disposition(name)},
    )


# --- rename a file ---
@router.patch("/{file_id}", response_model=FileOut)
def rename_file(file_id: int, body: RenameRequest, db: DbDep, user: CurrentUserDep):
    new_name = (body.filename or "").strip()
    if not new_name:
        raise InvalidRequestError("Invalid filename")

    file = get_owned_file(db, file_id, user.id)

    # Only the display name changes; the stored blob stays where it is
    file.filename = new_name
    db.commit()
    db.refresh(file)
    return file


# --- delete a file ---
@router.delete("/{file_id}", response_model=FileDeletionResult)
def delete_file(file_id: int, user: CurrentUserDep, cleanup: CleanupDep):
    result = cleanup.delete_files([file_id], user.id)
    if result.deleted_count == 0:
        raise NotFoundError("File not found")
    return result
