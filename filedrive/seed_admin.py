"""Create the administrator account from ADMIN_EMAIL / ADMIN_PASSWORD."""

import logging
import sys

from filedrive.core.config import get_settings
from filedrive.core.logging_config import setup_logging
from filedrive.core.security import hash_password
from filedrive.models.database import Base, SessionLocal, engine
from filedrive.models.file import FileMeta  # noqa: F401  registers the files table
from filedrive.models.user import ROLE_ADMIN, User

logger = logging.getLogger(__name__)


def seed_admin(db, email: str, password: str) -> bool:
    """Insert the admin user unless the email is taken. Returns True if created."""
    email = email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        logger.info("Admin already exists: %s", email)
        return False

    db.add(
        User(
            name="Super Admin",
            email=email,
            password=hash_password(password),
            role=ROLE_ADMIN,
            verified=True,
        )
    )
    db.commit()
    logger.info("Admin created: %s", email)
    return True


def main() -> int:
    setup_logging()
    settings = get_settings()
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_admin(db, settings.admin_email, settings.admin_password)
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
