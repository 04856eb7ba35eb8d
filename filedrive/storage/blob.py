"""S3-backed blob store.

Blobs are addressed by a public id plus the resource kind they were uploaded
as. A blob with public id ``P`` stored as kind ``K`` lives at object key
``K/P``, so addressing it with another kind finds nothing and raises
``WrongResourceKindError``.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from werkzeug.utils import secure_filename

from filedrive.core.config import Settings
from filedrive.core.errors import BlobStoreError, WrongResourceKindError

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


class ResourceKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    RAW = "raw"
    SCRIPT = "script"
    STYLE = "style"


# tried after the primary kind, in this order
FALLBACK_KINDS = (
    ResourceKind.RAW,
    ResourceKind.IMAGE,
    ResourceKind.VIDEO,
    ResourceKind.SCRIPT,
    ResourceKind.STYLE,
)


def kind_for_mime(mime_type: Optional[str]) -> ResourceKind:
    mime = (mime_type or "").lower()
    if mime.startswith("image/"):
        return ResourceKind.IMAGE
    if mime.startswith("video/"):
        return ResourceKind.VIDEO
    if "javascript" in mime:
        return ResourceKind.SCRIPT
    if "css" in mime:
        return ResourceKind.STYLE
    return ResourceKind.RAW


def candidate_kinds(resource_type: Optional[str], mime_type: Optional[str]) -> list:
    """Kinds to try when addressing a stored blob, most likely first."""
    try:
        primary = ResourceKind(resource_type) if resource_type else None
    except ValueError:
        primary = None
    if primary is None and mime_type:
        primary = kind_for_mime(mime_type)

    kinds = [primary] if primary else []
    for kind in FALLBACK_KINDS:
        if kind not in kinds:
            kinds.append(kind)
    return kinds


@dataclass
class StoredBlob:
    public_id: str
    resource_kind: ResourceKind
    url: str
    size: int


class S3BlobStore:
    def __init__(self, client, bucket: str, endpoint_url: Optional[str] = None, region: Optional[str] = None):
        self.client = client
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.region = region

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3BlobStore":
        client = boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
            endpoint_url=settings.aws_s3_endpoint_url,
        )
        return cls(
            client,
            settings.aws_s3_bucket_name,
            endpoint_url=settings.aws_s3_endpoint_url,
            region=settings.aws_region,
        )

    @staticmethod
    def object_key(public_id: str, resource_kind) -> str:
        return f"{ResourceKind(resource_kind).value}/{public_id}"

    def object_url(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        if self.region:
            return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    def upload(self, owner_id: int, filename: str, content: bytes, content_type: Optional[str]) -> StoredBlob:
        kind = kind_for_mime(content_type)
        # Create a unique public id, grouped per user
        safe_name = secure_filename(filename or "") or "file"
        public_id = f"{owner_id}/{int(time.time())}_{uuid.uuid4().hex[:8]}_{safe_name}"
        key = self.object_key(public_id, kind)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type or "application/octet-stream",
            )
        except (ClientError, BotoCoreError) as exc:
            raise BlobStoreError(f"Upload of '{filename}' failed: {exc}") from exc
        logger.info("Stored blob %s (%d bytes)", key, len(content))
        return StoredBlob(public_id=public_id, resource_kind=kind, url=self.object_url(key), size=len(content))

    def read(self, public_id: str, resource_kind) -> Tuple[bytes, str]:
        key = self.object_key(public_id, resource_kind)
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                raise WrongResourceKindError(public_id, ResourceKind(resource_kind).value) from exc
            raise BlobStoreError(f"Fetching '{key}' failed: {exc}") from exc
        except BotoCoreError as exc:
            raise BlobStoreError(f"Fetching '{key}' failed: {exc}") from exc
        return obj["Body"].read(), obj.get("ContentType") or "application/octet-stream"

    def fetch(self, public_id: str, resource_type: Optional[str], mime_type: Optional[str]) -> Tuple[bytes, str]:
        """Read a blob whose stored kind is only known approximately."""
        for kind in candidate_kinds(resource_type, mime_type):
            try:
                return self.read(public_id, kind)
            except WrongResourceKindError:
                continue
        raise BlobStoreError(f"Blob '{public_id}' not found under any resource kind")

    def destroy(self, public_id: str, resource_kind) -> dict:
        """Delete a blob stored under the given kind.

        S3 deletes are silent for missing keys, so the key is checked first to
        tell a wrong kind apart from a successful delete.

        Raises:
            WrongResourceKindError: nothing is stored under this kind.
            BlobStoreError: any other failure.
        """
        key = self.object_key(public_id, resource_kind)
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                raise WrongResourceKindError(public_id, ResourceKind(resource_kind).value) from exc
            raise BlobStoreError(f"Checking '{key}' failed: {exc}") from exc
        except BotoCoreError as exc:
            raise BlobStoreError(f"Checking '{key}' failed: {exc}") from exc

        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise BlobStoreError(f"Deleting '{key}' failed: {exc}") from exc
        return {"result": "ok", "key": key}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))
