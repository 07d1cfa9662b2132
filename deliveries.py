import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from database import create_document, get_db, parse_object_id, serialize, to_object_id, update_document
from lifecycle import sync_order_from_delivery
from schemas import Delivery as DeliverySchema, DeliveryCreate, DeliveryUpdate, UserOut
from security import admin_only, delivery_only

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/deliveries", tags=["deliveries"])


def delivery_out(db: Database, doc: dict) -> dict:
    out = serialize(doc)
    order_oid = parse_object_id(out.get("order_id"))
    out["order"] = serialize(db["order"].find_one({"_id": order_oid})) if order_oid else None
    return out


def apply_update(db: Database, delivery_id: str, payload: DeliveryUpdate, current: UserOut) -> dict:
    oid = to_object_id(delivery_id, "Delivery not found")
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if changes:
        delivery = update_document(db, "delivery", oid, changes)
    else:
        delivery = db["delivery"].find_one({"_id": oid})
    if delivery is None:
        raise HTTPException(404, "Delivery not found")
    logger.info("Delivery %s updated by %s: %s", delivery_id, current.email, changes)

    if "delivery_status" in changes:
        sync_order_from_delivery(db, delivery)
    return {"message": "Delivery updated successfully", "data": delivery_out(db, delivery)}


@router.post("", status_code=201)
def create_delivery(payload: DeliveryCreate, current: UserOut = Depends(delivery_only), db: Database = Depends(get_db)):
    order_oid = to_object_id(payload.order_id, "Order not found")
    if not db["order"].find_one({"_id": order_oid}, {"_id": 1}):
        raise HTTPException(404, "Order not found")
    if db["delivery"].find_one({"order_id": payload.order_id}, {"_id": 1}):
        raise HTTPException(400, "Order already has a delivery")

    data = payload.model_dump(exclude_none=True)
    delivery = DeliverySchema(**data)
    delivery_id = create_document(db, "delivery", delivery)
    logger.info("Delivery %s created by %s for order %s", delivery_id, current.email, payload.order_id)
    doc = db["delivery"].find_one({"_id": to_object_id(delivery_id)})
    return {"message": "Delivery created successfully", "data": serialize(doc)}


@router.get("")
def courier_deliveries(current: UserOut = Depends(delivery_only), db: Database = Depends(get_db)):
    docs = db["delivery"].find().sort("created_at", -1)
    return {"message": "Deliveries fetched successfully", "data": [delivery_out(db, d) for d in docs]}


@router.get("/admin")
def all_deliveries(current: UserOut = Depends(admin_only), db: Database = Depends(get_db)):
    docs = db["delivery"].find().sort("created_at", -1)
    return {"message": "Deliveries fetched successfully", "data": [delivery_out(db, d) for d in docs]}


@router.get("/{delivery_id}")
def get_delivery(delivery_id: str, current: UserOut = Depends(delivery_only), db: Database = Depends(get_db)):
    doc = db["delivery"].find_one({"_id": to_object_id(delivery_id, "Delivery not found")})
    if not doc:
        raise HTTPException(404, "Delivery not found")
    return {"message": "Delivery fetched successfully", "data": delivery_out(db, doc)}


@router.put("/admin/{delivery_id}")
def admin_update_delivery(
    delivery_id: str,
    payload: DeliveryUpdate,
    current: UserOut = Depends(admin_only),
    db: Database = Depends(get_db),
):
    return apply_update(db, delivery_id, payload, current)


@router.put("/{delivery_id}")
def update_delivery(
    delivery_id: str,
    payload: DeliveryUpdate,
    current: UserOut = Depends(delivery_only),
    db: Database = Depends(get_db),
):
    return apply_update(db, delivery_id, payload, current)


@router.delete("/{delivery_id}")
def delete_delivery(delivery_id: str, current: UserOut = Depends(admin_only), db: Database = Depends(get_db)):
    result = db["delivery"].delete_one({"_id": to_object_id(delivery_id, "Delivery not found")})
    if result.deleted_count == 0:
        raise HTTPException(404, "Delivery not found")
    logger.info("Delivery %s deleted by %s", delivery_id, current.email)
    return {"message": "Delivery deleted successfully"}
