import math
import re
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, serialize_doc, to_object_id, utcnow
from errors import NotFoundError, ValidationError
from schemas import Product as ProductSchema


def list_products(
    db: Database,
    page: int = 1,
    limit: int = 9,
    brands: Optional[List[str]] = None,
    categories: Optional[List[str]] = None,
    brand: Optional[str] = None,
) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if brands:
        query["brand"] = {"$in": brands}
    if categories:
        query["category"] = {"$in": categories}
    # single brand filter, used for related products
    if brand:
        query["brand"] = brand

    collection = db["product"]
    total = collection.count_documents(query)
    skip = max(page - 1, 0) * limit
    cursor = collection.find(query).sort("_id", 1).skip(skip).limit(limit)
    return {
        "products": [serialize_doc(d) for d in cursor],
        "current_page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total_products": total,
    }


def list_brands(db: Database) -> List[str]:
    return sorted(db["product"].distinct("brand"))


def list_categories(db: Database) -> List[str]:
    return sorted(db["product"].distinct("category"))


def find_product(db: Database, product_id: str) -> Optional[Dict[str, Any]]:
    return db["product"].find_one({"_id": to_object_id(product_id, "product")})


def attach_products(db: Database, lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Copy each line with its current product record under ``product`` (None if deleted)."""
    attached = []
    for line in lines:
        prod = find_product(db, line["product_id"])
        attached.append({**line, "product": serialize_doc(prod) if prod else None})
    return attached


def get_product(db: Database, product_id: str) -> Dict[str, Any]:
    product = find_product(db, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return serialize_doc(product)


def search_products(
    db: Database,
    query: Optional[str] = None,
    category: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> List[Dict[str, Any]]:
    filt: Dict[str, Any] = {}
    if query:
        pattern = re.escape(query)
        filt["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    if category:
        filt["category"] = category
    price_filter: Dict[str, Any] = {}
    if min_price is not None:
        price_filter["$gte"] = float(min_price)
    if max_price is not None:
        price_filter["$lte"] = float(max_price)
    if price_filter:
        filt["price"] = price_filter
    return [serialize_doc(d) for d in db["product"].find(filt)]


def create_product(db: Database, data: ProductSchema) -> Dict[str, Any]:
    product_id = create_document(db, "product", data)
    return get_product(db, product_id)


def update_product(db: Database, product_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    obj_id = to_object_id(product_id, "product")
    if not changes:
        raise ValidationError("No fields to update")
    changes = {**changes, "updated_at": utcnow()}
    product = db["product"].find_one_and_update(
        {"_id": obj_id}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if not product:
        raise NotFoundError("Product not found")
    return serialize_doc(product)


def delete_product(db: Database, product_id: str) -> None:
    res = db["product"].delete_one({"_id": to_object_id(product_id, "product")})
    if res.deleted_count == 0:
        raise NotFoundError("Product not found")
