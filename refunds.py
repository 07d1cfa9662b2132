import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from database import create_document, get_db, parse_object_id, serialize, to_object_id, update_document
from schemas import Refund as RefundSchema, RefundCreate, RefundUpdate, UserOut
from security import admin_only, buyer_only, ensure_owner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/refunds", tags=["refunds"])


def refund_out(db: Database, doc: dict) -> dict:
    out = serialize(doc)
    order_oid = parse_object_id(out.get("order_id"))
    user_oid = parse_object_id(out.get("user_id"))
    out["order"] = serialize(db["order"].find_one({"_id": order_oid})) if order_oid else None
    out["user"] = serialize(db["user"].find_one({"_id": user_oid}, {"name": 1, "email": 1})) if user_oid else None
    return out


@router.post("", status_code=201)
def create_refund(payload: RefundCreate, current: UserOut = Depends(buyer_only), db: Database = Depends(get_db)):
    order = db["order"].find_one({"_id": to_object_id(payload.order_id, "Order not found")})
    if not order:
        raise HTTPException(404, "Order not found")
    ensure_owner(current, order, "Not authorized to request a refund for this order")

    refund = RefundSchema(order_id=payload.order_id, user_id=current.id, reason=payload.reason)
    refund_id = create_document(db, "refund", refund)
    logger.info("Refund %s requested by %s for order %s", refund_id, current.email, payload.order_id)
    doc = db["refund"].find_one({"_id": to_object_id(refund_id)})
    return {"message": "Refund request created successfully", "data": serialize(doc)}


@router.get("/get")
def my_refunds(current: UserOut = Depends(buyer_only), db: Database = Depends(get_db)):
    docs = db["refund"].find({"user_id": current.id}).sort("created_at", -1)
    return {"message": "Refunds fetched successfully", "data": [refund_out(db, d) for d in docs]}


@router.get("")
def all_refunds(current: UserOut = Depends(admin_only), db: Database = Depends(get_db)):
    docs = db["refund"].find().sort("created_at", -1)
    return {"message": "Refunds fetched successfully", "data": [refund_out(db, d) for d in docs]}


@router.get("/{refund_id}")
def get_refund(refund_id: str, current: UserOut = Depends(admin_only), db: Database = Depends(get_db)):
    doc = db["refund"].find_one({"_id": to_object_id(refund_id, "Refund not found")})
    if not doc:
        raise HTTPException(404, "Refund not found")
    return {"message": "Refund fetched successfully", "data": refund_out(db, doc)}


@router.put("/{refund_id}")
def update_refund(
    refund_id: str,
    payload: RefundUpdate,
    current: UserOut = Depends(admin_only),
    db: Database = Depends(get_db),
):
    oid = to_object_id(refund_id, "Refund not found")
    if not db["refund"].find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(404, "Refund not found")
    # refund decisions never touch the order, its delivery or stock
    changes = payload.model_dump(exclude_none=True)
    updated = update_document(db, "refund", oid, changes)
    logger.info("Refund %s updated by %s: %s", refund_id, current.email, changes)
    return {"message": "Refund status updated successfully", "data": serialize(updated)}


@router.delete("/{refund_id}")
def delete_refund(refund_id: str, current: UserOut = Depends(admin_only), db: Database = Depends(get_db)):
    result = db["refund"].delete_one({"_id": to_object_id(refund_id, "Refund not found")})
    if result.deleted_count == 0:
        raise HTTPException(404, "Refund not found")
    logger.info("Refund %s deleted by %s", refund_id, current.email)
    return {"message": "Refund deleted successfully"}
