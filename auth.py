import hashlib
import logging
import secrets
from datetime import timedelta

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from pymongo.database import Database

from config import FRONTEND_URL, RESET_TOKEN_EXPIRE_MINUTES
from database import create_document, get_db, now
from mailer import email_configured, send_password_reset
from schemas import (
    ForgotPasswordRequest,
    ResetPasswordRequest,
    Role,
    Token,
    User as UserSchema,
    UserCreate,
    UserLogin,
    UserOut,
)
from security import create_access_token, get_current_user, get_password_hash, user_out, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

SELF_REGISTER_ROLES = {Role.BUYER.value, Role.DELIVERY.value}


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def clear_reset_token(db: Database, user_id) -> None:
    db["user"].update_one({"_id": user_id}, {"$unset": {"reset_password_token": "", "reset_password_expire": ""}})


def find_by_reset_token(db: Database, token: str):
    return db["user"].find_one({
        "reset_password_token": hash_reset_token(token),
        "reset_password_expire": {"$gt": now()},
    })


def auth_payload(user: dict) -> dict:
    data = user_out(user).model_dump()
    data["token"] = create_access_token({"sub": str(user["_id"])})
    return data


@router.post("/register", status_code=201)
def register(user: UserCreate, db: Database = Depends(get_db)):
    if user.role not in SELF_REGISTER_ROLES:
        raise HTTPException(400, "Invalid role for registration")
    if db["user"].find_one({"email": user.email}):
        raise HTTPException(400, "User already exists")
    doc = UserSchema(name=user.name, email=user.email, password_hash=get_password_hash(user.password), role=user.role)
    user_id = create_document(db, "user", doc)
    logger.info("Registered %s as %s", user.email, user.role)
    saved = db["user"].find_one({"_id": ObjectId(user_id)})
    return {"message": "User registered successfully", "data": auth_payload(saved)}


@router.post("/login")
def login(creds: UserLogin, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": creds.email})
    if not user or not verify_password(creds.password, user.get("password_hash", "")):
        raise HTTPException(401, "Invalid email or password")
    return {"message": "Login successful", "data": auth_payload(user)}


# OAuth2 password flow for the interactive docs; username carries the email
@router.post("/token", response_model=Token)
def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(), db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": form_data.username})
    if not user or not verify_password(form_data.password, user.get("password_hash", "")):
        raise HTTPException(401, "Invalid email or password")
    access_token = create_access_token({"sub": str(user["_id"])})
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=UserOut)
def me(current: UserOut = Depends(get_current_user)):
    return current


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordRequest, db: Database = Depends(get_db)):
    if not payload.email:
        raise HTTPException(400, "Email is required")

    user = db["user"].find_one({"email": payload.email})
    # same answer whether or not the account exists
    if not user:
        logger.info("Password reset requested for unknown email")
        return {"message": "Password reset link sent to email if account exists"}

    token = secrets.token_hex(32)
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {
            "reset_password_token": hash_reset_token(token),
            "reset_password_expire": now() + timedelta(minutes=RESET_TOKEN_EXPIRE_MINUTES),
        }},
    )
    reset_url = f"{FRONTEND_URL}/reset-password/{token}"

    if not email_configured():
        logger.warning("Email credentials not configured, reset link for %s: %s", user["email"], reset_url)
        return {"message": "Password reset link generated (email would be sent in production)"}

    try:
        send_password_reset(user["email"], reset_url)
    except Exception:
        logger.exception("Sending password reset email to %s failed", user["email"])
        clear_reset_token(db, user["_id"])
        raise HTTPException(500, "Error sending reset email")
    return {"message": "Password reset link sent to email"}


@router.get("/reset-password/{token}/verify")
def verify_reset_token(token: str, db: Database = Depends(get_db)):
    if not find_by_reset_token(db, token):
        raise HTTPException(400, "Invalid or expired token")
    return {"message": "Token is valid"}


@router.post("/reset-password/{token}")
def reset_password(token: str, payload: ResetPasswordRequest, db: Database = Depends(get_db)):
    if not payload.password:
        raise HTTPException(400, "New password is required")
    user = find_by_reset_token(db, token)
    if not user:
        raise HTTPException(400, "Invalid or expired token")
    db["user"].update_one(
        {"_id": user["_id"]},
        {
            "$set": {"password_hash": get_password_hash(payload.password), "updated_at": now()},
            "$unset": {"reset_password_token": "", "reset_password_expire": ""},
        },
    )
    logger.info("Password reset for %s", user["email"])
    return {"message": "Password reset successful"}
