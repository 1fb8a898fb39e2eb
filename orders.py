"""
Order / inventory flow.

An order is inserted first, then each line item decrements ``countInStock``
on the catalog collection named by its ``productType``. The writes are
sequential and not transactional: if a decrement fails part way, the order
stays persisted and earlier decrements are not reversed. Stock is allowed to
go below zero (treated as a backorder and logged).
"""
import logging
from typing import List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from auth import AuthContext
from catalog import kind_for_product_type
from database import create_document, get_documents, serialize, to_object_id, utcnow
from errors import Forbidden, InvalidInput, NotFound
from schemas import Order, OrderCreate, OrderItem, OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)

ORDER_STATUSES = [s.value for s in OrderStatus]


def _find_order(db: Database, order_id: str) -> dict:
    oid = to_object_id(order_id)
    order = db["order"].find_one({"_id": oid}) if oid else None
    if not order:
        raise NotFound("Order not found")
    return order


def _populate_users(db: Database, orders: List[dict]) -> List[dict]:
    """Replace each order's ``user`` id with ``{id, name, email}`` of the owner."""
    ids = {to_object_id(o.get("user")) for o in orders}
    ids.discard(None)
    owners = {}
    if ids:
        for u in db["user"].find({"_id": {"$in": list(ids)}}, {"name": 1, "email": 1}):
            owners[str(u["_id"])] = {"id": str(u["_id"]), "name": u.get("name"), "email": u.get("email")}
    out = []
    for o in orders:
        doc = serialize(o)
        doc["user"] = owners.get(str(o.get("user")), {"id": str(o.get("user")), "name": None, "email": None})
        out.append(doc)
    return out


def _decrement_stock(db: Database, order_id, item: OrderItem):
    kind = kind_for_product_type(item.product_type)
    updated = db[kind.collection].find_one_and_update(
        {"_id": to_object_id(item.product_id)},
        {"$inc": {"countInStock": -item.quantity}, "$set": {"updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        logger.warning("Order %s: %s %s not found, stock unchanged", order_id, item.product_type, item.product_id)
        return
    if updated.get("countInStock", 0) < 0:
        logger.warning("Order %s: %s %s stock is now %s (backorder)", order_id, item.product_type,
                       item.product_id, updated["countInStock"])


def create_order(db: Database, auth: AuthContext, payload: OrderCreate) -> dict:
    if not payload.order_items:
        raise InvalidInput("No order items provided")
    for item in payload.order_items:
        if to_object_id(item.product_id) is None:
            raise InvalidInput("Invalid product id", error=item.product_id)

    order = Order(
        user=auth.user_id,
        order_items=payload.order_items,
        shipping_address=payload.shipping_address,
        payment_method=payload.payment_method,
        items_price=payload.items_price,
        tax_price=payload.tax_price,
        shipping_price=payload.shipping_price,
        total_price=payload.total_price,
    )
    doc = create_document(db, "order", order)
    logger.info("Order %s created by user %s with %d item(s)", doc["_id"], auth.user_id, len(payload.order_items))

    for item in payload.order_items:
        _decrement_stock(db, doc["_id"], item)
    return serialize(doc)


def get_order(db: Database, auth: AuthContext, order_id: str) -> dict:
    order = _find_order(db, order_id)
    if str(order.get("user")) != auth.user_id and not auth.is_admin:
        raise Forbidden("Not authorized to view this order")
    return _populate_users(db, [order])[0]


def get_my_orders(db: Database, auth: AuthContext) -> List[dict]:
    query = {} if auth.is_admin else {"user": auth.user_id}
    return _populate_users(db, get_documents(db, "order", query, newest_first=True))


def get_all_orders(db: Database) -> List[dict]:
    orders = get_documents(db, "order", newest_first=True)
    logger.info("Found %d orders in database", len(orders))
    return _populate_users(db, orders)


def update_order_status(db: Database, order_id: str, status: Optional[str]) -> dict:
    if not status:
        raise InvalidInput("Status is required")
    if status not in ORDER_STATUSES:
        raise InvalidInput("Invalid status value", error=f"Allowed: {', '.join(ORDER_STATUSES)}")
    order = _find_order(db, order_id)

    now = utcnow()
    changes = {"orderStatus": status, "updatedAt": now}
    if status == OrderStatus.DELIVERED.value:
        changes["isDelivered"] = True
        changes["deliveredAt"] = now
    updated = db["order"].find_one_and_update(
        {"_id": order["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if updated is None:
        raise NotFound("Order not found")
    logger.info("Order %s status %s -> %s", order["_id"], order.get("orderStatus"), status)
    return serialize(updated)


def mark_order_paid(db: Database, auth: AuthContext, order_id: str) -> dict:
    order = _find_order(db, order_id)
    now = utcnow()
    updated = db["order"].find_one_and_update(
        {"_id": order["_id"]},
        {"$set": {"isPaid": True, "paidAt": now, "paymentStatus": PaymentStatus.PAID.value, "updatedAt": now}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFound("Order not found")
    logger.info("Order %s marked as paid by user %s", order["_id"], auth.user_id)
    return serialize(updated)


def delete_order(db: Database, order_id: str) -> dict:
    oid = to_object_id(order_id)
    deleted = db["order"].find_one_and_delete({"_id": oid}) if oid else None
    if not deleted:
        raise NotFound("Order not found")
    logger.info("Order %s deleted", oid)
    return {"message": "Order deleted successfully"}
