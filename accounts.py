"""
User accounts: registration, login and profile maintenance.

Users are never hard-deleted; the role can only be changed by an admin.
"""
import logging
from typing import List

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import AuthContext, create_token, hash_password, public_user, verify_password
from database import create_document, get_documents, to_object_id, utcnow
from errors import InvalidInput, NotFound, Unauthenticated
from schemas import Role, User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _normalize_email(email: str) -> str:
    return str(email).strip().lower()


def _check_password(password: str):
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def _load(db: Database, user_id: str) -> dict:
    oid = to_object_id(user_id)
    user = db["user"].find_one({"_id": oid}) if oid else None
    if not user:
        raise NotFound("User not found")
    return user


def register(db: Database, name: str, email: str, password: str) -> dict:
    email = _normalize_email(email)
    _check_password(password)
    if db["user"].find_one({"email": email}):
        raise InvalidInput("Email already exists")
    try:
        user = create_document(db, "user", User(name=name.strip(), email=email, password=hash_password(password)))
    except DuplicateKeyError:
        raise InvalidInput("Email already exists")
    logger.info("User %s registered", user["_id"])
    return {"token": create_token(user), "user": public_user(user)}


def login(db: Database, email: str, password: str) -> dict:
    user = db["user"].find_one({"email": _normalize_email(email)})
    if not user or not verify_password(password, user.get("password", "")):
        raise Unauthenticated("Invalid credentials")
    return {"token": create_token(user), "user": public_user(user)}


def get_profile(db: Database, auth: AuthContext) -> dict:
    return public_user(_load(db, auth.user_id))


def update_profile(db: Database, auth: AuthContext, changes: dict) -> dict:
    update = {}
    if changes.get("name") is not None:
        if not str(changes["name"]).strip():
            raise InvalidInput("Name cannot be empty")
        update["name"] = str(changes["name"]).strip()
    if "profileImage" in changes:
        update["profileImage"] = changes["profileImage"]
    update["updatedAt"] = utcnow()
    user = db["user"].find_one_and_update(
        {"_id": to_object_id(auth.user_id)}, {"$set": update}, return_document=ReturnDocument.AFTER
    )
    if not user:
        raise NotFound("User not found")
    return public_user(user)


def change_password(db: Database, auth: AuthContext, current_password: str, new_password: str) -> dict:
    user = _load(db, auth.user_id)
    if not verify_password(current_password, user.get("password", "")):
        raise InvalidInput("Current password is incorrect")
    _check_password(new_password)
    db["user"].update_one(
        {"_id": user["_id"]}, {"$set": {"password": hash_password(new_password), "updatedAt": utcnow()}}
    )
    logger.info("User %s changed password", user["_id"])
    return {"message": "Password updated"}


def list_users(db: Database) -> List[dict]:
    return [public_user(u) for u in get_documents(db, "user", newest_first=True)]


def set_role(db: Database, user_id: str, role: str) -> dict:
    if role not in [r.value for r in Role]:
        raise InvalidInput("Invalid role", error=f"Allowed: {', '.join(r.value for r in Role)}")
    oid = to_object_id(user_id)
    user = db["user"].find_one_and_update(
        {"_id": oid}, {"$set": {"role": role, "updatedAt": utcnow()}}, return_document=ReturnDocument.AFTER
    ) if oid else None
    if not user:
        raise NotFound("User not found")
    logger.info("User %s role set to %s", oid, role)
    return public_user(user)
