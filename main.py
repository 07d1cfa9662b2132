import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

import database
from config import ADMIN_EMAIL, ADMIN_PASSWORD, LOG_LEVEL, UPLOADS_DIR
from database import create_document
from schemas import Role, User as UserSchema
from security import get_password_hash

import auth
import deliveries
import orders
import payments
import products
import refunds
import users

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def ensure_admin():
    """Create the bootstrap admin account if one is configured and missing."""
    db = database.db
    if db is None or not (ADMIN_EMAIL and ADMIN_PASSWORD):
        return
    if db["user"].find_one({"email": ADMIN_EMAIL}):
        return
    admin = UserSchema(name="Administrator", email=ADMIN_EMAIL, password_hash=get_password_hash(ADMIN_PASSWORD), role=Role.ADMIN)
    create_document(db, "user", admin)
    logger.info("Bootstrap admin %s created", ADMIN_EMAIL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_admin()
    yield


app = FastAPI(title="Textile Shop API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(UPLOADS_DIR, exist_ok=True)
app.mount("/api/uploads", StaticFiles(directory=UPLOADS_DIR), name="uploads")

for module in (auth, users, products, orders, deliveries, refunds, payments):
    app.include_router(module.router)


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Health
@app.get("/")
def read_root():
    return {"message": "Textile Shop API is running"}


@app.get("/test")
def test_database():
    db = database.db
    try:
        collections = db.list_collection_names() if db is not None else []
        return {"backend": "ok", "db": "ok" if db is not None else "not_configured", "collections": collections}
    except Exception as e:
        return {"backend": "ok", "db": f"error: {str(e)[:80]}"}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
