import logging
from typing import Any, Dict, List

from pymongo.database import Database

from catalog import find_product
from database import serialize_doc, to_object_id, utcnow
from errors import NotFoundError

logger = logging.getLogger(__name__)


def _find_user(db: Database, user_id: str) -> Dict[str, Any]:
    user = db["user"].find_one({"_id": to_object_id(user_id, "user")})
    if not user:
        raise NotFoundError("User not found")
    return user


def toggle_favorite(db: Database, user_id: str, product_id: str) -> Dict[str, bool]:
    """Add the product to the user's favorites, or remove it if already there.

    Both branches are single atomic updates on the user document: the pull
    only matches while the id is present, and the add is set-like, so two
    concurrent toggles cannot clobber the rest of the list.
    """
    user = _find_user(db, user_id)
    if not find_product(db, product_id):
        raise NotFoundError("Product not found")

    removed = db["user"].update_one(
        {"_id": user["_id"], "favorites": product_id},
        {"$pull": {"favorites": product_id}, "$set": {"updated_at": utcnow()}},
    )
    if removed.modified_count:
        return {"added": False}
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$addToSet": {"favorites": product_id}, "$set": {"updated_at": utcnow()}},
    )
    return {"added": True}


def list_favorites(db: Database, user_id: str) -> List[Dict[str, Any]]:
    user = _find_user(db, user_id)
    products = []
    for product_id in user.get("favorites", []):
        product = find_product(db, product_id)
        if product:
            products.append(serialize_doc(product))
    return products
