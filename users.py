import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from database import create_document, get_db, to_object_id, update_document
from schemas import ProfileUpdate, Role, User as UserSchema, UserCreate, UserOut, UserUpdate
from security import admin_only, buyer_only, ensure_owner, get_password_hash, user_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])

ROLES = {r.value for r in Role}


def find_user(db: Database, user_id: str) -> dict:
    user = db["user"].find_one({"_id": to_object_id(user_id, "User not found")})
    if not user:
        raise HTTPException(404, "User not found")
    return user


def save_changes(db: Database, user: dict, changes: dict) -> dict:
    if "email" in changes and changes["email"] != user.get("email"):
        if db["user"].find_one({"email": changes["email"]}, {"_id": 1}):
            raise HTTPException(400, "User already exists")
    if "password" in changes:
        changes["password_hash"] = get_password_hash(changes.pop("password"))
    if not changes:
        return user
    return update_document(db, "user", user["_id"], changes)


@router.post("", status_code=201)
def create_user(payload: UserCreate, current: UserOut = Depends(admin_only), db: Database = Depends(get_db)):
    if payload.role not in ROLES:
        raise HTTPException(400, "Invalid role")
    if db["user"].find_one({"email": payload.email}, {"_id": 1}):
        raise HTTPException(400, "User already exists")
    doc = UserSchema(
        name=payload.name,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
        role=payload.role,
    )
    user_id = create_document(db, "user", doc)
    logger.info("User %s (%s) created by %s", payload.email, payload.role, current.email)
    return {"message": "User created successfully", "data": user_out(find_user(db, user_id))}


@router.get("")
def list_users(current: UserOut = Depends(admin_only), db: Database = Depends(get_db)):
    return {"message": "Users fetched successfully", "data": [user_out(u) for u in db["user"].find()]}


@router.get("/my/{user_id}")
def get_profile(user_id: str, current: UserOut = Depends(buyer_only), db: Database = Depends(get_db)):
    user = find_user(db, user_id)
    ensure_owner(current, user, "Not authorized to view this profile", field="_id")
    return {"message": "User fetched successfully", "data": user_out(user)}


@router.put("/my/{user_id}")
def update_profile(
    user_id: str,
    payload: ProfileUpdate,
    current: UserOut = Depends(buyer_only),
    db: Database = Depends(get_db),
):
    user = find_user(db, user_id)
    ensure_owner(current, user, "Not authorized to update this profile", field="_id")
    updated = save_changes(db, user, payload.model_dump(exclude_none=True))
    return {"message": "User updated successfully", "data": user_out(updated)}


@router.get("/{user_id}")
def get_user(user_id: str, current: UserOut = Depends(admin_only), db: Database = Depends(get_db)):
    return {"message": "User fetched successfully", "data": user_out(find_user(db, user_id))}


@router.put("/{user_id}")
def update_user(
    user_id: str,
    payload: UserUpdate,
    current: UserOut = Depends(admin_only),
    db: Database = Depends(get_db),
):
    user = find_user(db, user_id)
    changes = payload.model_dump(exclude_none=True)
    if "role" in changes:
        changes["role"] = Role(changes["role"]).value
    updated = save_changes(db, user, changes)
    logger.info("User %s updated by %s", user_id, current.email)
    return {"message": "User updated successfully", "data": user_out(updated)}


@router.delete("/{user_id}")
def delete_user(user_id: str, current: UserOut = Depends(admin_only), db: Database = Depends(get_db)):
    result = db["user"].delete_one({"_id": to_object_id(user_id, "User not found")})
    if result.deleted_count == 0:
        raise HTTPException(404, "User not found")
    logger.info("User %s deleted by %s", user_id, current.email)
    return {"message": "User deleted successfully"}
