"""
Order / delivery status lifecycle

Orders and deliveries each carry their own status vocabulary. The mapping
tables below are the only place where one is translated into the other, and
the sync_* functions apply them after a status change on either side.

The paired writes are sequential and not transactional. While the companion
write is in flight the record that triggered it carries sync_pending=True: the
order when an order change moves its delivery, the delivery when a delivery
change moves its order. If the companion write fails the flag stays set so the
inconsistency can be found later.
"""
import logging
from datetime import timedelta
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.database import Database

from config import EXPECTED_DELIVERY_DAYS
from database import create_document, now, update_document
from schemas import Delivery, DeliveryStatus, OrderStatus

logger = logging.getLogger(__name__)


# Order status -> status pushed onto the linked delivery.
ORDER_TO_DELIVERY = {
    OrderStatus.SHIPPED: DeliveryStatus.IN_TRANSIT,
}

# Order statuses that remove the linked delivery outright.
ORDER_REMOVES_DELIVERY = {OrderStatus.CANCELLED}

# Delivery status -> status pushed onto the linked order.
DELIVERY_TO_ORDER = {
    DeliveryStatus.DELIVERED: OrderStatus.DELIVERED,
    DeliveryStatus.CANCELLED: OrderStatus.CANCELLED,
}


def parse_order_status(value) -> Optional[OrderStatus]:
    if value is None:
        return None
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def create_delivery_for_order(db: Database, order_id: str) -> dict:
    """Create the companion delivery for a freshly placed order."""
    delivery = Delivery(
        order_id=order_id,
        delivery_date=now() + timedelta(days=EXPECTED_DELIVERY_DAYS),
    )
    delivery_id = create_document(db, "delivery", delivery)
    logger.info("Delivery %s created for order %s", delivery_id, order_id)
    return db["delivery"].find_one({"_id": ObjectId(delivery_id)})


def _mark_sync(db: Database, collection: str, oid: ObjectId, pending: bool) -> None:
    db[collection].update_one({"_id": oid}, {"$set": {"sync_pending": pending}})


def sync_delivery_from_order(db: Database, order: dict, previous: Optional[str]) -> None:
    """Push an order status change onto its delivery.

    previous is the status string as it was stored before the change, so a
    legacy "Cancelled" still counts as a change when it becomes "cancelled".
    """
    status = parse_order_status(order.get("status"))
    if status is None:
        return
    order_oid = order["_id"]
    order_id = str(order_oid)

    if status in ORDER_REMOVES_DELIVERY:
        if previous == status.value:
            return
        _mark_sync(db, "order", order_oid, True)
        try:
            result = db["delivery"].delete_one({"order_id": order_id})
        except Exception:
            logger.exception("Failed to remove delivery for cancelled order %s", order_id)
            raise
        _mark_sync(db, "order", order_oid, False)
        logger.info("Order %s cancelled, removed %d delivery record(s)", order_id, result.deleted_count)
        return

    target = ORDER_TO_DELIVERY.get(status)
    if target is None:
        return
    delivery = db["delivery"].find_one({"order_id": order_id})
    if delivery is None:
        logger.warning("Order %s has no delivery to move to %s", order_id, target.value)
        return
    _mark_sync(db, "order", order_oid, True)
    try:
        update_document(db, "delivery", delivery["_id"], {"delivery_status": target.value})
    except Exception:
        logger.exception("Failed to move delivery %s to %s", delivery["_id"], target.value)
        raise
    _mark_sync(db, "order", order_oid, False)
    logger.info("Delivery %s moved to %s after order %s became %s", delivery["_id"], target.value, order_id, status.value)


def sync_order_from_delivery(db: Database, delivery: dict) -> Optional[dict]:
    """Push a delivery status change onto its order. Returns the updated order."""
    try:
        status = DeliveryStatus(delivery.get("delivery_status"))
    except ValueError:
        return None
    target = DELIVERY_TO_ORDER.get(status)
    if target is None:
        return None

    try:
        order_oid = ObjectId(delivery.get("order_id"))
    except (InvalidId, TypeError):
        logger.warning("Delivery %s references an invalid order id", delivery.get("_id"))
        return None

    changes = {"status": target.value}
    if status == DeliveryStatus.DELIVERED:
        changes["is_paid"] = True
        changes["paid_at"] = now()

    delivery_oid = delivery["_id"]
    _mark_sync(db, "delivery", delivery_oid, True)
    try:
        order = update_document(db, "order", order_oid, changes)
    except Exception:
        logger.exception("Failed to sync order %s from delivery %s", order_oid, delivery_oid)
        raise
    _mark_sync(db, "delivery", delivery_oid, False)
    if order is None:
        logger.warning("Delivery %s references missing order %s", delivery.get("_id"), order_oid)
        return None
    logger.info("Order %s moved to %s after delivery became %s", order_oid, target.value, status.value)
    return order
