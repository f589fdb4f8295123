"""
Registration, login and the request auth gateway.

``get_current_identity`` only checks the token. ``require_admin`` also
re-reads the user so that a demoted or deleted admin is refused even while
their token is still valid.
"""
import logging
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from catalog import find_product
from database import create_document, get_db, serialize_doc
from errors import AuthenticationError, AuthorizationError, ConflictError
from schemas import User as UserSchema
from security import hash_password, issue_token, verify_password, verify_token

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class Identity(BaseModel):
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _auth_result(user_id: str, role: str) -> Dict[str, Any]:
    return {"token": issue_token(user_id, role), "user_id": user_id, "role": role}


def register_user(db: Database, username: str, email: str, password: str, role: str = "user") -> Dict[str, Any]:
    logger.info("Registration attempt: username=%s email=%s role=%s", username, email, role)
    existing = db["user"].find_one({"$or": [{"email": email}, {"username": username}]})
    if existing:
        raise ConflictError("User already exists")
    user = UserSchema(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
    )
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        # lost a race against a concurrent registration
        raise ConflictError("User already exists")
    logger.info("User registered: user_id=%s username=%s", user_id, username)
    return _auth_result(user_id, user.role)


def authenticate_user(db: Database, email_or_username: str, password: str) -> Dict[str, Any]:
    logger.info("Login attempt: %s", email_or_username)
    user = db["user"].find_one({"$or": [{"email": email_or_username}, {"username": email_or_username}]})
    if not user or not verify_password(password, user.get("password_hash", "")):
        raise AuthenticationError("Invalid credentials", reason="credentials")
    user_id = str(user["_id"])
    role = user.get("role", "user")
    logger.info("Login successful: user_id=%s role=%s", user_id, role)
    return _auth_result(user_id, role)


def get_current_identity(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Identity:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No token, authorization denied", reason="missing")
    claims = verify_token(credentials.credentials)
    return Identity(user_id=claims.user_id, role=claims.role)


def require_admin(identity: Identity = Depends(get_current_identity), db: Database = Depends(get_db)) -> Identity:
    if not identity.is_admin:
        raise AuthorizationError("Access denied. Admin rights required.")
    user = None
    if ObjectId.is_valid(identity.user_id):
        user = db["user"].find_one({"_id": ObjectId(identity.user_id)})
    if not user or user.get("role") != "admin":
        logger.warning("Admin token refused for user_id=%s", identity.user_id)
        raise AuthorizationError("Access denied. Admin rights required.")
    return identity


def list_users(db: Database):
    users = []
    for u in db["user"].find({}, {"password_hash": 0}):
        user = serialize_doc(u)
        favorites = (find_product(db, pid) for pid in u.get("favorites", []))
        user["favorites"] = [serialize_doc(p) for p in favorites if p]
        users.append(user)
    return users
