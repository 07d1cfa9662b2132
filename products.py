import logging
import os
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from pydantic import ValidationError
from pymongo.database import Database

from config import UPLOADS_DIR
from database import create_document, get_db, get_documents, serialize, to_object_id, update_document
from schemas import Product as ProductSchema, UserOut
from security import admin_only

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


def image_url(request: Request, image: Optional[str]) -> Optional[str]:
    if not image:
        return None
    return f"{request.base_url}api/uploads/{image}"


def product_out(request: Request, doc: dict) -> dict:
    out = serialize(doc)
    out["image_url"] = image_url(request, out.get("image"))
    return out


def save_image(upload: Optional[UploadFile]) -> Optional[str]:
    if upload is None or not upload.filename:
        return None
    os.makedirs(UPLOADS_DIR, exist_ok=True)
    _, ext = os.path.splitext(upload.filename)
    filename = f"{uuid.uuid4().hex}{ext.lower()}"
    with open(os.path.join(UPLOADS_DIR, filename), "wb") as fh:
        fh.write(upload.file.read())
    return filename


@router.get("")
def list_products(request: Request, db: Database = Depends(get_db)):
    docs = get_documents(db, "product")
    return {"message": "Products fetched successfully", "data": [product_out(request, d) for d in docs]}


@router.get("/{product_id}")
def get_product(product_id: str, request: Request, db: Database = Depends(get_db)):
    prod = db["product"].find_one({"_id": to_object_id(product_id, "Product not found")})
    if not prod:
        raise HTTPException(404, "Product not found")
    return {"message": "Product fetched successfully", "data": product_out(request, prod)}


@router.post("", status_code=201)
def create_product(
    request: Request,
    name: str = Form(...),
    price: float = Form(...),
    description: Optional[str] = Form(None),
    stock: int = Form(0),
    category: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current: UserOut = Depends(admin_only),
    db: Database = Depends(get_db),
):
    try:
        prod = ProductSchema(name=name, description=description, price=price, stock=stock, category=category)
    except ValidationError as e:
        raise HTTPException(400, e.errors()[0]["msg"])
    prod.image = save_image(image)
    prod_id = create_document(db, "product", prod)
    logger.info("Product %s created by %s", prod_id, current.email)
    doc = db["product"].find_one({"_id": to_object_id(prod_id)})
    return {"message": "Product created successfully", "data": product_out(request, doc)}


@router.put("/{product_id}")
def update_product(
    product_id: str,
    request: Request,
    name: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    description: Optional[str] = Form(None),
    stock: Optional[int] = Form(None),
    category: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current: UserOut = Depends(admin_only),
    db: Database = Depends(get_db),
):
    oid = to_object_id(product_id, "Product not found")
    prod = db["product"].find_one({"_id": oid})
    if not prod:
        raise HTTPException(404, "Product not found")
    if price is not None and price < 0:
        raise HTTPException(400, "Price must not be negative")
    if stock is not None and stock < 0:
        raise HTTPException(400, "Stock must not be negative")

    changes = {
        k: v
        for k, v in {"name": name, "price": price, "description": description, "stock": stock, "category": category}.items()
        if v is not None
    }
    filename = save_image(image)
    if filename:
        changes["image"] = filename
    updated = update_document(db, "product", oid, changes)
    return {"message": "Product updated successfully", "data": product_out(request, updated)}


@router.delete("/{product_id}")
def delete_product(product_id: str, current: UserOut = Depends(admin_only), db: Database = Depends(get_db)):
    result = db["product"].delete_one({"_id": to_object_id(product_id, "Product not found")})
    if result.deleted_count == 0:
        raise HTTPException(404, "Product not found")
    logger.info("Product %s deleted by %s", product_id, current.email)
    return {"message": "Product deleted successfully"}
