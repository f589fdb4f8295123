from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.database import Database

from catalog import find_product
from database import create_document, serialize_doc, to_object_id
from errors import NotFoundError
from schemas import Review as ReviewSchema


def create_review(db: Database, user_id: str, product_id: str, rating: int, comment: Optional[str] = None) -> Dict[str, Any]:
    if not find_product(db, product_id):
        raise NotFoundError("Product not found")
    review_id = create_document(db, "review", ReviewSchema(
        user_id=user_id,
        product_id=product_id,
        rating=rating,
        comment=comment,
    ))
    return serialize_doc(db["review"].find_one({"_id": to_object_id(review_id, "review")}))


def list_product_reviews(db: Database, product_id: str) -> List[Dict[str, Any]]:
    reviews = [serialize_doc(r) for r in db["review"].find({"product_id": product_id}).sort("created_at", 1)]
    # attach author usernames
    user_ids = {ObjectId(r["user_id"]) for r in reviews if ObjectId.is_valid(r["user_id"])}
    names = {
        str(u["_id"]): u.get("username")
        for u in db["user"].find({"_id": {"$in": list(user_ids)}}, {"username": 1})
    }
    for r in reviews:
        r["username"] = names.get(r["user_id"])
    return reviews
