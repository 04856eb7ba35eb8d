"""Request and response schemas.

Every endpoint answers with one fixed shape. Fields are snake_case in Python
and camelCase on the wire.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# --- users ---

class UserOut(ApiModel):
    id: int
    name: str
    email: str
    role: str
    verified: bool
    banned: bool
    created_at: Optional[datetime] = None


class AdminUserRow(UserOut):
    # None for ADMIN accounts, 0 for users without files
    file_count: Optional[int] = None
    total_size_bytes: Optional[int] = None


class UserPage(ApiModel):
    rows: List[AdminUserRow]
    total: int
    admin_count: int
    verified_count: int
    banned_count: int
    page: int
    per_page: int


# --- files ---

class FileOut(ApiModel):
    id: int
    filename: str
    original_name: Optional[str] = None
    mime_type: Optional[str] = None
    size: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FilePage(ApiModel):
    rows: List[FileOut]
    total: int
    page: int
    per_page: int


class StorageUsage(ApiModel):
    used_bytes: int
    remaining_bytes: int
    max_bytes: int
    used_percent: int


# --- cleanup results ---

class CleanupOutcome(ApiModel):
    id: int
    ok: bool
    detail: str
    resource_kind: Optional[str] = None


class FileDeletionResult(ApiModel):
    deleted_count: int
    per_item_cloud_results: List[CleanupOutcome] = Field(default_factory=list)


class UserDeletionResult(ApiModel):
    deleted_count: int
    files_deleted_count: int
    per_item_cloud_results: List[CleanupOutcome] = Field(default_factory=list)


class BatchUpdateResult(ApiModel):
    modified_count: int


class Message(ApiModel):
    message: str


# --- request bodies ---

class IdsRequest(ApiModel):
    ids: List[int]


class BatchBanRequest(ApiModel):
    ids: List[int]
    banned: bool


class RenameRequest(ApiModel):
    filename: Optional[str] = None


class RegisterRequest(ApiModel):
    name: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(ApiModel):
    email: str = ""
    password: str = ""


class EmailRequest(ApiModel):
    email: str = ""


class TokenRequest(ApiModel):
    token: str = ""


class ResetPasswordRequest(ApiModel):
    token: str = ""
    password: str = ""


class ProfileUpdateRequest(ApiModel):
    name: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class AdminUserUpdateRequest(ApiModel):
    name: Optional[str] = None
    role: Optional[str] = None
    verified: Optional[bool] = None
    banned: Optional[bool] = None
