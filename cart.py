"""
Cart engine.

Each user owns at most one cart document. Lines are keyed by product id and
every write replaces the whole ``items`` list, conditional on the cart's
``version`` being the one that was read. A writer that loses the race gets
a ConflictError instead of silently overwriting the other write.
"""
import logging
from typing import Any, Dict, List

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from catalog import attach_products, find_product
from database import create_document, serialize_doc, utcnow
from errors import ConflictError, NotFoundError, ValidationError
from schemas import Cart as CartSchema

logger = logging.getLogger(__name__)


def find_cart(db: Database, user_id: str):
    return db["cart"].find_one({"user_id": user_id})


def get_or_create_cart(db: Database, user_id: str) -> Dict[str, Any]:
    cart = find_cart(db, user_id)
    if cart:
        return cart
    try:
        create_document(db, "cart", CartSchema(user_id=user_id))
    except DuplicateKeyError:
        # created concurrently by another request
        pass
    return find_cart(db, user_id)


def save_items(db: Database, cart: Dict[str, Any], items: List[Dict[str, Any]]) -> Dict[str, Any]:
    version = cart.get("version", 0)
    res = db["cart"].update_one(
        {"_id": cart["_id"], "version": version},
        {"$set": {"items": items, "updated_at": utcnow()}, "$inc": {"version": 1}},
    )
    if res.matched_count == 0:
        logger.warning("Concurrent cart update detected for user_id=%s", cart["user_id"])
        raise ConflictError("Cart was modified by another request, please retry")
    return {**cart, "items": items, "version": version + 1}


def add_item(db: Database, user_id: str, product_id: str, quantity: int = 1) -> Dict[str, Any]:
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    if not find_product(db, product_id):
        raise NotFoundError("Product not found")
    cart = get_or_create_cart(db, user_id)
    items = [dict(it) for it in cart.get("items", [])]
    for it in items:
        if it["product_id"] == product_id:
            it["quantity"] = int(it["quantity"]) + quantity
            break
    else:
        items.append({"product_id": product_id, "quantity": quantity})
    return save_items(db, cart, items)


def remove_item(db: Database, user_id: str, product_id: str) -> Dict[str, Any]:
    cart = find_cart(db, user_id)
    if not cart:
        raise NotFoundError("Cart not found")
    items = [it for it in cart.get("items", []) if it["product_id"] != product_id]
    return save_items(db, cart, items)


def update_quantity(db: Database, user_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
    """Overwrite a line's quantity. Zero drops the line."""
    if quantity < 0:
        raise ValidationError("Quantity cannot be negative")
    cart = find_cart(db, user_id)
    if not cart:
        raise NotFoundError("Cart not found")
    items = [dict(it) for it in cart.get("items", [])]
    line = next((it for it in items if it["product_id"] == product_id), None)
    if line is None:
        raise NotFoundError("Item not found in cart")
    if quantity == 0:
        items.remove(line)
    else:
        line["quantity"] = quantity
    return save_items(db, cart, items)


def cart_view(db: Database, cart: Dict[str, Any]) -> Dict[str, Any]:
    view = serialize_doc(cart)
    view["items"] = attach_products(db, cart.get("items", []))
    return view


def get_cart_view(db: Database, user_id: str) -> Dict[str, Any]:
    return cart_view(db, get_or_create_cart(db, user_id))
