"""
accounts.py — Registration, login, profile and password-recovery routes.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import mailer
from auth import (
    create_access_token,
    generate_reset_token,
    get_current_user,
    hash_password,
    hash_reset_token,
    oauth2_scheme,
    revoke_external_session,
    verify_password,
)
from config import get_settings
from database import get_db
from errors import AppError, ErrorKind
from models import User, utcnow
from schemas import (
    ApiResponse,
    AuthOut,
    ForgotPassword,
    MessageOut,
    PasswordChange,
    PasswordReset,
    ProfileUpdate,
    UserLogin,
    UserOut,
    UserRegister,
)
from utils import logger

router = APIRouter(prefix="/api/auth", tags=["auth"])

RESET_REQUESTED_MESSAGE = "If an account with that email exists, a password reset link has been sent."


def _auth_response(user: User) -> dict:
    return {"success": True, "data": {"token": create_access_token(user.id), "user": user}}


def _find_by_reset_token(db: Session, token: str):
    return (
        db.query(User)
        .filter(User.reset_token_hash == hash_reset_token(token), User.reset_token_expires_at > utcnow())
        .first()
    )


@router.post("/register", response_model=ApiResponse[AuthOut], status_code=status.HTTP_201_CREATED)
def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """Create an account and return a token for it."""
    email = user_data.email.lower()
    logger.info("Registration attempt for email: %s", email)

    if db.query(User).filter(User.email == email).first():
        raise AppError("User already exists with this email", ErrorKind.CONFLICT)

    new_user = User(email=email, hashed_password=hash_password(user_data.password), name=user_data.name)
    db.add(new_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AppError("User already exists with this email", ErrorKind.CONFLICT)
    db.refresh(new_user)
    logger.info("User created: %s (id=%s)", new_user.email, new_user.id)

    try:
        mailer.send_welcome_email(new_user.email, new_user.name or "there")
    except AppError as e:
        logger.warning("Welcome email skipped for %s: %s", new_user.email, e.message)

    return _auth_response(new_user)


@router.post("/login", response_model=ApiResponse[AuthOut])
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Authenticate with email and password."""
    email = credentials.email.lower()
    logger.info("Login attempt for email: %s", email)

    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.warning("Failed login for email: %s", email)
        raise AppError("Invalid email or password", ErrorKind.UNAUTHENTICATED)

    logger.info("Token issued for user: %s", user.id)
    return _auth_response(user)


@router.post("/logout", response_model=MessageOut)
def logout(token: str = Depends(oauth2_scheme), current_user: User = Depends(get_current_user)):
    """Tokens are stateless; only the external provider session needs revoking."""
    logger.info("Logout for user: %s", current_user.id)
    revoke_external_session(token)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me", response_model=ApiResponse[UserOut])
def me(current_user: User = Depends(get_current_user)):
    return {"success": True, "data": current_user}


@router.patch("/profile", response_model=ApiResponse[UserOut])
def update_profile(
    changes: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    logger.info("Profile update for user: %s", current_user.id)
    if changes.name is not None:
        current_user.name = changes.name
    if changes.avatar_url is not None:
        current_user.avatar_url = str(changes.avatar_url)
    db.commit()
    db.refresh(current_user)
    return {"success": True, "data": current_user}


@router.patch("/change-password", response_model=MessageOut)
def change_password(
    body: PasswordChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    logger.info("Password change for user: %s", current_user.id)
    if not verify_password(body.current_password, current_user.hashed_password):
        raise AppError("Current password is incorrect", ErrorKind.BAD_REQUEST)

    current_user.hashed_password = hash_password(body.new_password)
    db.commit()
    return {"success": True, "message": "Password updated successfully"}


@router.post("/forgot-password", response_model=MessageOut)
def forgot_password(body: ForgotPassword, db: Session = Depends(get_db)):
    """Issue a reset link. The response never reveals whether the account exists."""
    email = body.email.lower()
    logger.info("Password reset requested for: %s", email)
    settings = get_settings()

    user = db.query(User).filter(User.email == email).first()
    if user:
        token, digest = generate_reset_token()
        user.reset_token_hash = digest
        user.reset_token_expires_at = utcnow() + timedelta(minutes=settings.RESET_TOKEN_TTL_MINUTES)
        db.commit()

        reset_url = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?token={token}"
        try:
            mailer.send_password_reset_email(user.email, reset_url, user.name or "User")
        except AppError as e:
            logger.error("Reset email for %s not delivered: %s", email, e.message)

    return {"success": True, "message": RESET_REQUESTED_MESSAGE}


@router.post("/reset-password", response_model=MessageOut)
def reset_password(body: PasswordReset, db: Session = Depends(get_db)):
    user = _find_by_reset_token(db, body.token)
    if not user:
        raise AppError("Invalid or expired reset token", ErrorKind.BAD_REQUEST)

    user.hashed_password = hash_password(body.new_password)
    user.reset_token_hash = None
    user.reset_token_expires_at = None
    db.commit()
    logger.info("Password reset completed for user: %s", user.id)
    return {"success": True, "message": "Password reset successful. You can now sign in with your new password."}


@router.get("/verify-reset-token/{token}", response_model=MessageOut)
def verify_reset_token(token: str, db: Session = Depends(get_db)):
    if not _find_by_reset_token(db, token):
        raise AppError("Invalid or expired reset token", ErrorKind.BAD_REQUEST)
    return {"success": True, "message": "Reset token is valid"}
