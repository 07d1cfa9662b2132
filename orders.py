import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_db, now, parse_object_id, serialize, to_object_id, update_document
from lifecycle import create_delivery_for_order, parse_order_status, sync_delivery_from_order
from products import product_out
from schemas import (
    Order as OrderSchema,
    OrderCreate,
    OrderStatus,
    OrderStatusUpdate,
    PaymentMethod,
    PaymentResult,
    UserOut,
)
from security import admin_only, buyer_only, ensure_owner, ensure_owner_or_admin, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])


def order_out(request: Request, db: Database, doc: dict, with_user: bool = False) -> dict:
    """Serialize an order with its product (and optionally buyer) resolved."""
    out = serialize(doc)
    product_oid = parse_object_id(out.get("product_id"))
    prod = db["product"].find_one({"_id": product_oid}) if product_oid else None
    out["product"] = product_out(request, prod) if prod else None
    if with_user:
        user_oid = parse_object_id(out.get("user_id"))
        user = db["user"].find_one({"_id": user_oid}, {"name": 1, "email": 1}) if user_oid else None
        out["user"] = serialize(user)
    return out


def find_order(db: Database, order_id: str) -> dict:
    order = db["order"].find_one({"_id": to_object_id(order_id, "Order not found")})
    if not order:
        raise HTTPException(404, "Order not found")
    return order


def reserve_stock(db: Database, product_id: str, quantity: int) -> dict:
    """Take `quantity` units off a product, or reject if it cannot cover them."""
    oid = to_object_id(product_id, "Product not found")
    if not db["product"].find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(404, "Product not found")
    # conditional decrement: stock can never go below zero
    updated = db["product"].find_one_and_update(
        {"_id": oid, "stock": {"$gte": quantity}},
        {"$inc": {"stock": -quantity}, "$set": {"updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise HTTPException(400, "Insufficient stock available")
    return updated


@router.post("", status_code=201)
def create_order(payload: OrderCreate, current: UserOut = Depends(buyer_only), db: Database = Depends(get_db)):
    reserve_stock(db, payload.product_id, payload.quantity)

    is_paid = payload.payment_method == PaymentMethod.CARD
    order = OrderSchema(
        product_id=payload.product_id,
        user_id=current.id,
        quantity=payload.quantity,
        total_price=payload.total_price,
        payment_method=payload.payment_method,
        shipping_address=payload.shipping_address,
        is_paid=is_paid,
        paid_at=now() if is_paid else None,
        sync_pending=True,
    )
    order_id = create_document(db, "order", order)
    logger.info("Order %s placed by %s for %d x product %s", order_id, current.email, payload.quantity, payload.product_id)

    delivery = create_delivery_for_order(db, order_id)
    saved = update_document(db, "order", to_object_id(order_id), {"sync_pending": False})

    return {
        "message": "Order and delivery created successfully",
        "data": {"order": serialize(saved), "delivery": serialize(delivery)},
    }


@router.get("/myorders")
def my_orders(request: Request, current: UserOut = Depends(buyer_only), db: Database = Depends(get_db)):
    docs = db["order"].find({"user_id": current.id}).sort("created_at", -1)
    return {"message": "My orders fetched successfully", "data": [order_out(request, db, d) for d in docs]}


@router.get("")
def all_orders(request: Request, current: UserOut = Depends(admin_only), db: Database = Depends(get_db)):
    docs = db["order"].find().sort("created_at", -1)
    return {"message": "All orders fetched successfully", "data": [order_out(request, db, d, with_user=True) for d in docs]}


@router.get("/{order_id}")
def get_order(order_id: str, request: Request, current: UserOut = Depends(get_current_user), db: Database = Depends(get_db)):
    order = find_order(db, order_id)
    ensure_owner_or_admin(current, order, "Not authorized to view this order")
    return {"message": "Order fetched successfully", "data": order_out(request, db, order, with_user=True)}


@router.put("/status/{order_id}")
def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    current: UserOut = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    order = find_order(db, order_id)
    previous = order.get("status")
    status: Optional[OrderStatus] = payload.status
    if status is None:
        return {"message": "Order status updated successfully", "data": serialize(order)}

    updated = update_document(db, "order", order["_id"], {"status": status.value})
    logger.info("Order %s status %s -> %s by %s", order_id, previous, status.value, current.email)
    sync_delivery_from_order(db, updated, previous)
    return {"message": "Order status updated successfully", "data": serialize(find_order(db, order_id))}


@router.put("/pay/{order_id}")
def mark_order_paid(
    order_id: str,
    payload: PaymentResult,
    current: UserOut = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    order = find_order(db, order_id)
    updated = update_document(
        db,
        "order",
        order["_id"],
        {"is_paid": True, "paid_at": now(), "payment_result": payload.model_dump()},
    )
    logger.info("Order %s marked paid by %s", order_id, current.email)
    return {"message": "Order marked as paid successfully", "data": serialize(updated)}


@router.put("/cancel/{order_id}")
def cancel_order(order_id: str, current: UserOut = Depends(buyer_only), db: Database = Depends(get_db)):
    order = find_order(db, order_id)
    ensure_owner(current, order, "Not authorized to cancel this order")

    previous = order.get("status")
    if parse_order_status(previous) == OrderStatus.DELIVERED:
        raise HTTPException(400, "Cannot cancel a delivered order")

    updated = update_document(db, "order", order["_id"], {"status": OrderStatus.CANCELLED.value})
    logger.info("Order %s cancelled by buyer %s", order_id, current.email)
    sync_delivery_from_order(db, updated, previous)
    return {"message": "Order cancelled successfully", "data": serialize(find_order(db, order_id))}


@router.delete("/{order_id}")
def delete_order(order_id: str, current: UserOut = Depends(admin_only), db: Database = Depends(get_db)):
    result = db["order"].delete_one({"_id": to_object_id(order_id, "Order not found")})
    if result.deleted_count == 0:
        raise HTTPException(404, "Order not found")
    logger.info("Order %s deleted by %s", order_id, current.email)
    return {"message": "Order deleted successfully"}
