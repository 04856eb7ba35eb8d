"""Pytest fixtures for filedrive tests."""

import os

# settings are cached on first use, so the environment has to be ready first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["MAX_STORAGE_BYTES"] = "10000"
os.environ["ALLOWED_EMAIL_DOMAINS"] = "gmail.com,example.com"
os.environ.pop("SMTP_HOST", None)

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from filedrive.core.dependencies import get_blob_store, get_mailer  # noqa: E402
from filedrive.core.errors import BlobStoreError, WrongResourceKindError  # noqa: E402
from filedrive.core.security import hash_password  # noqa: E402
from filedrive.main import app  # noqa: E402
from filedrive.models.database import Base, get_db  # noqa: E402
from filedrive.models.file import FileMeta  # noqa: E402
from filedrive.models.user import ROLE_ADMIN, ROLE_USER, User  # noqa: E402
from filedrive.storage.blob import ResourceKind, StoredBlob, candidate_kinds, kind_for_mime  # noqa: E402

PASSWORD = "secret123"


class FakeBlobStore:
    """In-memory stand-in for S3BlobStore with the same kind semantics."""

    def __init__(self):
        self.blobs = {}
        self.failing = set()
        self.destroy_calls = []

    def put(self, public_id, kind, content=b"", content_type="application/octet-stream"):
        self.blobs[(ResourceKind(kind).value, public_id)] = (content, content_type)

    def upload(self, owner_id, filename, content, content_type):
        kind = kind_for_mime(content_type)
        public_id = f"{owner_id}/{len(self.blobs)}_{filename}"
        self.put(public_id, kind, content, content_type or "application/octet-stream")
        return StoredBlob(public_id=public_id, resource_kind=kind, url=f"memory://{kind.value}/{public_id}", size=len(content))

    def read(self, public_id, resource_kind):
        key = (ResourceKind(resource_kind).value, public_id)
        if key not in self.blobs:
            raise WrongResourceKindError(public_id, key[0])
        return self.blobs[key]

    def fetch(self, public_id, resource_type, mime_type):
        for kind in candidate_kinds(resource_type, mime_type):
            try:
                return self.read(public_id, kind)
            except WrongResourceKindError:
                continue
        raise BlobStoreError(f"Blob '{public_id}' not found under any resource kind")

    def destroy(self, public_id, resource_kind):
        kind = ResourceKind(resource_kind).value
        self.destroy_calls.append((public_id, kind))
        if public_id in self.failing:
            raise BlobStoreError(f"Deleting '{public_id}' failed: access denied")
        if (kind, public_id) not in self.blobs:
            raise WrongResourceKindError(public_id, kind)
        del self.blobs[(kind, public_id)]
        return {"result": "ok"}


class FakeMailer:
    def __init__(self):
        self.sent = []

    def send_verification_email(self, to, token):
        self.sent.append(("verify", to, token))

    def send_password_reset_email(self, to, token):
        self.sent.append(("reset", to, token))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(db, blob_store, mailer):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_user(db, name, email=None, role=ROLE_USER, verified=False, banned=False, created_at=None, password=PASSWORD):
    user = User(
        name=name,
        email=(email or f"{name.lower()}@example.com").lower(),
        password=hash_password(password),
        role=role,
        verified=verified,
        banned=banned,
        created_at=created_at or datetime.utcnow(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_admin(db, name="Root", **kwargs):
    return make_user(db, name, role=ROLE_ADMIN, verified=True, **kwargs)


def make_file(db, owner, filename="doc.txt", size=0, public_id=None, mime_type=None,
              resource_type=None, path=None, created_at=None):
    file = FileMeta(
        owner_id=owner.id,
        filename=filename,
        original_name=filename,
        mime_type=mime_type,
        resource_type=resource_type,
        public_id=public_id,
        path=path,
        size=size,
        created_at=created_at or datetime.utcnow(),
    )
    db.add(file)
    db.commit()
    db.refresh(file)
    return file


def login(client, user, password=PASSWORD):
    response = client.post("/api/auth/login", json={"email": user.email, "password": password})
    assert response.status_code == 200, response.text
    return response
