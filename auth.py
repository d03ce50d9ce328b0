from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header
from jose import JWTError, jwt
from passlib.context import CryptContext

import config
import database
from errors import AuthError
from logs import get_logger
from resolver import utcnow

log = get_logger(__name__)

# Use pbkdf2_sha256 to avoid external bcrypt dependency issues
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.JWT_EXPIRES_MINUTES))
    return jwt.encode({"id": user_id, "role": role, "exp": expire}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise AuthError("Invalid token")
    if not payload.get("id"):
        raise AuthError("Invalid token")
    return {"id": payload["id"], "role": payload.get("role", "user")}


def get_current_user(authorization: Optional[str] = Header(None)) -> dict:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthError("No token provided")
    return decode_token(authorization.split(" ", 1)[1].strip())


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user["role"] != "admin":
        raise AuthError("Admin access required", status_code=403)
    return user


def authenticate(email: str, password: str) -> dict:
    user = database.find_one("user", {"email": email.lower()})
    if not user or not verify_password(password, user.get("password", "")):
        raise AuthError("Invalid credentials")
    return user


def ensure_admin_user() -> None:
    """Create the admin account from ADMIN_EMAIL/ADMIN_PASSWORD if it is missing."""
    if database.db is None or not (config.ADMIN_EMAIL and config.ADMIN_PASSWORD):
        return
    email = config.ADMIN_EMAIL.lower()
    if database.find_one("user", {"email": email}):
        return
    now = utcnow()
    database.create_document("user", {
        "email": email,
        "password": hash_password(config.ADMIN_PASSWORD),
        "role": "admin",
        "profile": {"name": "Admin"},
        "createdAt": now,
        "updatedAt": now,
    })
    log.info("admin_user_created", email=email)
