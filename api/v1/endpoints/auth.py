"""
RedBoat Hotel API - Authentication Endpoints
============================================

HYBRID MONOLITH: Imports from root services.py and schemas.py

Registro en dos pasos (código de 6 dígitos por email), login con cookie
httponly "auth" de 7 días y recuperación de contraseña.
"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

# Import from API deps
from api.deps import client_info, get_current_user, get_db

# IMPORT FROM ROOT - Single Source of Truth
from config import AUTH_COOKIE_NAME, COOKIE_SECURE, JWT_EXPIRES_DAYS
from database import User
from errors import ServiceError
from security import create_access_token
from services import ActivityLogService, AuthService
from schemas import (
    DataResponse, EmailRequest, LoginRequest, MessageResponse, ResetPasswordRequest,
    SetUsernameRequest, SignupRequest, UserDTO, VerifyCodeRequest,
)

router = APIRouter()


def _set_session_cookie(response: Response, user: UserDTO) -> None:
    token = create_access_token(user.id, user.email, user.role)
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        max_age=JWT_EXPIRES_DAYS * 24 * 60 * 60,
    )


# ==========================================
# ENDPOINTS
# ==========================================

@router.post(
    "/signup",
    response_model=MessageResponse,
    summary="Sign Up",
    description="Store a pending signup and email a 6-digit verification code.",
)
def signup(data: SignupRequest, db: Session = Depends(get_db)):
    AuthService.signup(db, data)
    return MessageResponse(
        message="Verification code sent to your email. Please check your inbox and verify your account."
    )


@router.post(
    "/verify-email",
    response_model=DataResponse[UserDTO],
    status_code=status.HTTP_201_CREATED,
    summary="Verify Email",
)
def verify_email(data: VerifyCodeRequest, request: Request, response: Response,
                 db: Session = Depends(get_db)):
    """Crea la cuenta a partir del registro pendiente e inicia sesión."""
    user = AuthService.verify_email(db, data.email, data.code)
    _set_session_cookie(response, user)
    ActivityLogService.log(
        db, "signup", "user", resource_id=user.id, actor_email=user.email, **client_info(request)
    )
    return DataResponse(data=user, message="Email verified and account created successfully")


@router.post("/resend-code", response_model=MessageResponse, summary="Resend Verification Code")
def resend_code(data: EmailRequest, db: Session = Depends(get_db)):
    AuthService.resend_code(db, data.email)
    return MessageResponse(message="Verification code resent")


@router.post(
    "/login",
    response_model=DataResponse[UserDTO],
    summary="User Login",
    description="Authenticate with email and password. Sets the httponly session cookie.",
)
def login(credentials: LoginRequest, request: Request, response: Response,
          db: Session = Depends(get_db)):
    info = client_info(request)
    try:
        user = AuthService.login(db, credentials.email, credentials.password)
    except ServiceError:
        ActivityLogService.log(
            db, "login", "auth", actor_email=credentials.email, status="failure", **info
        )
        raise

    _set_session_cookie(response, user)
    ActivityLogService.log(db, "login", "auth", actor=db.get(User, user.id), **info)
    return DataResponse(data=user, message="Login successful")


@router.post("/logout", response_model=MessageResponse, summary="Logout")
def logout(response: Response):
    response.delete_cookie(AUTH_COOKIE_NAME, httponly=True, secure=COOKIE_SECURE, samesite="lax")
    return MessageResponse(message="Logged out")


@router.post("/forgot-password", response_model=MessageResponse, summary="Forgot Password")
def forgot_password(data: EmailRequest, db: Session = Depends(get_db)):
    AuthService.forgot_password(db, data.email)
    return MessageResponse(message="Password reset code sent to your email")


@router.post("/verify-reset-code", response_model=MessageResponse, summary="Verify Reset Code")
def verify_reset_code(data: VerifyCodeRequest, db: Session = Depends(get_db)):
    AuthService.verify_reset_code(db, data.email, data.code)
    return MessageResponse(message="Code verified")


@router.post("/reset-password", response_model=MessageResponse, summary="Reset Password")
def reset_password(data: ResetPasswordRequest, request: Request, db: Session = Depends(get_db)):
    AuthService.reset_password(db, data.email, data.code, data.new_password)
    ActivityLogService.log(db, "reset-password", "user", actor_email=data.email, **client_info(request))
    return MessageResponse(message="Password updated successfully")


@router.post("/set-username", response_model=DataResponse[UserDTO], summary="Choose Username")
def set_username(data: SetUsernameRequest, user: User = Depends(get_current_user),
                 db: Session = Depends(get_db)):
    updated = AuthService.set_username(db, user.id, data.username)
    return DataResponse(data=updated, message="Username set successfully")
