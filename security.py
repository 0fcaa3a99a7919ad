"""
RedBoat Hotel - Seguridad
=========================

Hash de contraseñas (bcrypt), token de sesión JWT (python-jose) que viaja
en la cookie "auth", política de contraseñas y códigos de verificación.
"""

import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import bcrypt
from jose import JWTError, jwt

from config import JWT_SECRET, JWT_ALGORITHM, JWT_EXPIRES_DAYS

SPECIAL_CHARACTERS = r"""[!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?]"""
PASSWORD_REQUIREMENTS = (
    "Password must be at least 8 characters with 1 uppercase, "
    "1 lowercase, 1 number, and 1 special character"
)
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
CODE_TTL_MINUTES = 10


def get_password_hash(password: str) -> str:
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Hash mal formado en la base
        return False


def password_errors(password: Optional[str]) -> List[str]:
    """Lista de requisitos incumplidos; vacía si la contraseña es válida."""
    password = password or ""
    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least 1 uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least 1 lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least 1 number")
    if not re.search(SPECIAL_CHARACTERS, password):
        errors.append("Password must contain at least 1 special character")
    return errors


def create_access_token(user_id: int, email: str, role: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=JWT_EXPIRES_DAYS)
    to_encode = {"sub": str(user_id), "email": email, "role": role, "exp": expire}
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Payload del token o None si es inválido o expiró."""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None


def generate_verification_code() -> str:
    return f"{100000 + secrets.randbelow(900000)}"


def code_expiry() -> datetime:
    return datetime.now() + timedelta(minutes=CODE_TTL_MINUTES)
