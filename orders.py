"""
Order engine.

An order is a snapshot of the cart: each line copies the product's price at
the moment of ordering, and the total is fixed from then on. Placing an
order is a two-step saga, insert the order and then empty the cart; if the
cart cannot be emptied the order is deleted again so the user is never left
with both a placed order and a full cart.
"""
import logging
from typing import Any, Dict, List

from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from cart import find_cart
from catalog import attach_products, find_product
from database import create_document, serialize_doc, to_object_id, utcnow
from errors import AuthorizationError, ConflictError, InternalError, NotFoundError, ValidationError
from schemas import ORDER_STATUSES, Order as OrderSchema, OrderItem

logger = logging.getLogger(__name__)


def _snapshot_items(db: Database, cart: Dict[str, Any]) -> List[OrderItem]:
    items = []
    for line in cart["items"]:
        product = find_product(db, line["product_id"])
        if not product:
            raise NotFoundError(f"Product {line['product_id']} is no longer available")
        items.append(OrderItem(
            product_id=line["product_id"],
            quantity=line["quantity"],
            price=float(product.get("price", 0)),
        ))
    return items


def create_order(db: Database, user_id: str, shipping_address: str) -> Dict[str, Any]:
    cart = find_cart(db, user_id)
    if not cart or not cart.get("items"):
        raise ValidationError("Cart is empty")

    items = _snapshot_items(db, cart)
    total = round(sum(it.price * it.quantity for it in items), 2)
    order = OrderSchema(
        user_id=user_id,
        items=items,
        total_amount=total,
        status="pending",
        shipping_address=shipping_address,
    )
    order_id = create_document(db, "order", order)

    try:
        res = db["cart"].update_one(
            {"_id": cart["_id"], "version": cart.get("version", 0)},
            {"$set": {"items": [], "updated_at": utcnow()}, "$inc": {"version": 1}},
        )
    except PyMongoError:
        logger.exception("Clearing cart failed for order %s, rolling back", order_id)
        _discard_order(db, order_id)
        raise InternalError("Error creating order")
    if res.matched_count == 0:
        logger.warning("Cart changed while placing order %s, rolling back", order_id)
        _discard_order(db, order_id)
        raise ConflictError("Cart was modified while placing the order, please retry")

    logger.info("Order created: order_id=%s user_id=%s total=%s", order_id, user_id, total)
    return serialize_doc(db["order"].find_one({"_id": to_object_id(order_id, "order")}))


def _discard_order(db: Database, order_id: str) -> None:
    db["order"].delete_one({"_id": to_object_id(order_id, "order")})


def get_user_orders(db: Database, user_id: str) -> List[Dict[str, Any]]:
    cursor = db["order"].find({"user_id": user_id}).sort([("created_at", DESCENDING), ("_id", DESCENDING)])
    return [serialize_doc(d) for d in cursor]


def get_order(db: Database, order_id: str, requester_id: str, requester_role: str) -> Dict[str, Any]:
    order = db["order"].find_one({"_id": to_object_id(order_id, "order")})
    if not order:
        raise NotFoundError("Order not found")
    if order["user_id"] != requester_id and requester_role != "admin":
        raise AuthorizationError("Not authorized to view this order")
    view = serialize_doc(order)
    view["items"] = attach_products(db, order["items"])
    return view


def update_status(db: Database, order_id: str, status: str, requester_role: str) -> Dict[str, Any]:
    # Any status may follow any other; the lifecycle order is not enforced.
    if requester_role != "admin":
        raise AuthorizationError("Not authorized to update order status")
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status: {status}")
    order = db["order"].find_one_and_update(
        {"_id": to_object_id(order_id, "order")},
        {"$set": {"status": status, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not order:
        raise NotFoundError("Order not found")
    logger.info("Order %s status set to %s", order_id, status)
    return serialize_doc(order)
