import logging

from fastapi import APIRouter, Response

from filedrive.core.config import get_settings
from filedrive.core.dependencies import CurrentUserDep, DbDep, MailerDep
from filedrive.core.errors import AuthenticationError, InvalidRequestError, NotFoundError, PermissionDeniedError
from filedrive.core.security import (
    MIN_PASSWORD_LENGTH,
    PURPOSE_EMAIL_VERIFY,
    PURPOSE_PASSWORD_RESET,
    create_email_token,
    create_session_token,
    decode_email_token,
    hash_password,
    verify_password,
)
from filedrive.models.user import ROLE_USER, User
from filedrive.schemas import (
    EmailRequest,
    LoginRequest,
    Message,
    RegisterRequest,
    ResetPasswordRequest,
    TokenRequest,
    UserOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def set_session_cookie(response: Response, user: User) -> None:
    settings = get_settings()
    response.set_cookie(
        settings.cookie_name,
        create_session_token(user.id, user.role),
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
        max_age=settings.session_ttl_seconds,
    )


def clear_session_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(settings.cookie_name, path="/", httponly=True, samesite="lax")


@router.post("/register", response_model=UserOut)
def register(body: RegisterRequest, response: Response, db: DbDep):
    name = body.name.strip()
    email = body.email.strip().lower()
    password = body.password

    if not name or not email or not password:
        raise InvalidRequestError("Fields are empty")

    _, _, domain = email.partition("@")
    if not domain:
        raise InvalidRequestError("Invalid email format")

    allowed = get_settings().email_domains
    if allowed and domain not in allowed:
        raise InvalidRequestError(
            f"Email domain '{domain}' is not allowed. Please use email from: {', '.join(allowed)}"
        )

    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    # Check if user exists
    if db.query(User).filter(User.email == email).first():
        raise InvalidRequestError("Email is already in use")

    user = User(
        name=name,
        email=email,
        password=hash_password(password),
        role=ROLE_USER,
        verified=False,
        banned=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s (%s)", user.id, email)

    set_session_cookie(response, user)
    return user


@router.post("/login", response_model=UserOut)
def login(body: LoginRequest, response: Response, db: DbDep):
    email = body.email.strip().lower()
    user = db.query(User).filter(User.email == email).first()

    if not user:
        raise AuthenticationError("Incorrect email or password.")
    if user.banned:
        raise PermissionDeniedError("Your account has been banned.")
    if not verify_password(body.password, user.password):
        raise AuthenticationError("Incorrect email or password.")

    # login success → set a cookie
    set_session_cookie(response, user)
    return user


@router.post("/logout", response_model=Message)
def logout(response: Response):
    clear_session_cookie(response)
    return Message(message="Logged out")


@router.get("/me", response_model=UserOut)
def me(user: CurrentUserDep):
    return user


@router.post("/verify-request", response_model=Message)
def verify_request(body: EmailRequest, db: DbDep, mailer: MailerDep):
    email = body.email.strip().lower()
    if not email:
        raise InvalidRequestError("Email is required")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise NotFoundError("Email is not registered")
    if user.verified:
        raise InvalidRequestError("Account already verified")

    token = create_email_token(user.id, user.email, PURPOSE_EMAIL_VERIFY)
    mailer.send_verification_email(user.email, token)
    return Message(message="Verification email sent")


@router.post("/verify", response_model=Message)
def verify(body: TokenRequest, db: DbDep):
    payload = decode_email_token(body.token.strip(), PURPOSE_EMAIL_VERIFY)

    user = db.query(User).filter(User.email == payload.get("email")).first()
    if not user:
        raise NotFoundError("User not found")
    if user.verified:
        return Message(message="Already verified")

    user.verified = True
    db.commit()
    logger.info("Verified email of user %s", user.id)
    return Message(message="Email verified successfully")


@router.post("/forgot", response_model=Message)
def forgot_password(body: EmailRequest, db: DbDep, mailer: MailerDep):
    email = body.email.strip().lower()
    if not email:
        raise InvalidRequestError("Email is required")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise NotFoundError("Email is not registered")

    token = create_email_token(user.id, user.email, PURPOSE_PASSWORD_RESET)
    mailer.send_password_reset_email(user.email, token)
    return Message(message="Reset link sent to email")


@router.post("/reset", response_model=Message)
def reset_password(body: ResetPasswordRequest, db: DbDep):
    token = body.token.strip()
    if not token or not body.password:
        raise InvalidRequestError("Token and new password are required")
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise InvalidRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    payload = decode_email_token(token, PURPOSE_PASSWORD_RESET)

    user = db.query(User).filter(User.email == payload.get("email")).first()
    if not user:
        raise InvalidRequestError("User not found")
    if verify_password(body.password, user.password):
        raise InvalidRequestError("New password must be different from old password")

    user.password = hash_password(body.password)
    db.commit()
    logger.info("Password reset for user %s", user.id)
    return Message(message="Password has been reset successfully")
