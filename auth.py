"""
Authentication and authorization for the Gemora API.

Tokens are HS256 JWTs carrying the user id (``sub``) and role. Every
protected request re-reads the user from the database and hands route
handlers an explicit ``AuthContext`` instead of mutating the request.
"""
import logging
from datetime import timedelta
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from pydantic import BaseModel, ValidationError
from pymongo.database import Database

import config
from database import get_db, to_object_id, utcnow
from errors import Forbidden, Unauthenticated
from schemas import Role

security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)

password_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthContext(BaseModel):
    user_id: str
    role: Role
    name: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def hash_password(password: str) -> str:
    return password_ctx.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return password_ctx.verify(password, hashed)


def create_token(user: dict) -> str:
    now = utcnow()
    payload = {
        "sub": str(user["_id"]),
        "role": user.get("role", Role.USER.value),
        "iat": now,
        "exp": now + timedelta(minutes=config.JWT_EXPIRES_MIN),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm="HS256")


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid token")


def public_user(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "role": user.get("role", Role.USER.value),
        "profileImage": user.get("profileImage"),
    }


def _context_for(token: str, db: Database) -> AuthContext:
    payload = decode_token(token)
    oid = to_object_id(payload.get("sub"))
    user = db["user"].find_one({"_id": oid}) if oid else None
    if not user:
        raise Unauthenticated("User not found")
    try:
        return AuthContext(
            user_id=str(user["_id"]),
            role=user.get("role", Role.USER.value),
            name=user.get("name"),
            email=user.get("email"),
        )
    except ValidationError:
        logger.warning("User %s has unknown role %r", user["_id"], user.get("role"))
        raise Unauthenticated("Invalid user role")


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
                     db: Database = Depends(get_db)) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("No token provided")
    return _context_for(credentials.credentials, db)


def get_optional_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
                      db: Database = Depends(get_db)) -> Optional[AuthContext]:
    """Like get_current_user, but anonymous (or badly authenticated) callers get None."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return _context_for(credentials.credentials, db)
    except Unauthenticated:
        return None


def require_roles(*roles: Role):
    allowed = {Role(r) for r in roles}

    def dependency(user: AuthContext = Depends(get_current_user)) -> AuthContext:
        if user.role not in allowed:
            names = ", ".join(sorted(r.value for r in allowed))
            raise Forbidden(f"Access denied. Required roles: {names}")
        return user

    return dependency


require_admin = require_roles(Role.ADMIN)
require_member = require_roles(Role.ADMIN, Role.USER)
