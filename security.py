"""
Access gate

Password hashing, JWT bearer tokens, role checks and the ownership
predicates that handlers use to decide whether a user may touch a record.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from database import get_db
from schemas import Role, UserOut

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def user_out(user: dict) -> UserOut:
    return UserOut(
        id=str(user["_id"]),
        name=user.get("name"),
        email=user.get("email"),
        role=user.get("role", Role.BUYER.value),
        phone=user.get("phone"),
        address=user.get("address"),
    )


def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: Database = Depends(get_db)) -> UserOut:
    if not token:
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    credentials_exception = HTTPException(status_code=401, detail="Not authorized, token failed")
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception
        user = db["user"].find_one({"_id": ObjectId(user_id)})
    except (JWTError, InvalidId, TypeError):
        raise credentials_exception
    if not user:
        raise credentials_exception
    return user_out(user)


def require_role(role: Role):
    """Dependency factory: the current user must hold `role`."""
    label = "delivery person" if role == Role.DELIVERY else role.value

    def checker(current: UserOut = Depends(get_current_user)) -> UserOut:
        if current.role != role.value:
            raise HTTPException(status_code=403, detail=f"Not authorized as {label}")
        return current

    return checker


admin_only = require_role(Role.ADMIN)
buyer_only = require_role(Role.BUYER)
delivery_only = require_role(Role.DELIVERY)


# Ownership

def is_admin(user: UserOut) -> bool:
    return user.role == Role.ADMIN.value


def is_owner(user: UserOut, doc: dict, field: str = "user_id") -> bool:
    return doc is not None and str(doc.get(field)) == user.id


def ensure_owner(user: UserOut, doc: dict, detail: str, field: str = "user_id") -> None:
    if not is_owner(user, doc, field):
        raise HTTPException(status_code=403, detail=detail)


def ensure_owner_or_admin(user: UserOut, doc: dict, detail: str, field: str = "user_id") -> None:
    if not (is_admin(user) or is_owner(user, doc, field)):
        raise HTTPException(status_code=403, detail=detail)
