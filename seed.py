"""
Seed the catalogue with demo products and, optionally, an admin account.

    python seed.py [--reset] [--admin-email EMAIL --admin-password PASSWORD]
"""
import argparse
import logging
from typing import Optional

from pymongo.database import Database

from database import create_document, ensure_indexes, get_db
from schemas import Product as ProductSchema, User as UserSchema
from security import hash_password

logger = logging.getLogger(__name__)

DEMO_PRODUCTS = [
    {
        "name": "iPhone 14",
        "brand": "Apple",
        "description": "A15 Bionic with a stunning display.",
        "price": 699.0,
        "category": "Electronics",
        "image": "https://images.unsplash.com/photo-1603899123335-4a9d94dfbd89",
        "in_stock": True,
    },
    {
        "name": "MacBook Air M2",
        "brand": "Apple",
        "description": "Ultra portable laptop with M2 performance.",
        "price": 1249.0,
        "category": "Electronics",
        "image": "https://images.unsplash.com/photo-1517336714731-489689fd1ca8",
        "in_stock": True,
    },
    {
        "name": "Galaxy S23",
        "brand": "Samsung",
        "description": "Flagship Android phone with a bright AMOLED screen.",
        "price": 799.0,
        "category": "Electronics",
        "image": "https://images.unsplash.com/photo-1511707171634-5f897ff02aa9",
        "in_stock": True,
    },
    {
        "name": "Bespoke Refrigerator",
        "brand": "Samsung",
        "description": "Four-door fridge with customisable panels.",
        "price": 2199.0,
        "category": "Appliances",
        "image": "https://images.unsplash.com/photo-1571175443880-49e1d25b2bc5",
        "in_stock": False,
    },
    {
        "name": "WH-1000XM5 Headphones",
        "brand": "Sony",
        "description": "Noise cancelling wireless headphones.",
        "price": 399.0,
        "category": "Accessories",
        "image": "https://images.unsplash.com/photo-1518443248587-30bdc8f94f04",
        "in_stock": True,
    },
    {
        "name": "Bravia 55 inch TV",
        "brand": "Sony",
        "description": "4K HDR television with Google TV.",
        "price": 1099.0,
        "category": "Electronics",
        "image": "https://images.unsplash.com/photo-1593359677879-a4bb92f829d1",
        "in_stock": True,
    },
    {
        "name": "OLED evo C3",
        "brand": "LG",
        "description": "Self-lit OLED panel with perfect blacks.",
        "price": 1499.0,
        "category": "Electronics",
        "image": "https://images.unsplash.com/photo-1601944179066-29786cb9d32a",
        "in_stock": True,
    },
    {
        "name": "Front Load Washer",
        "brand": "LG",
        "description": "Steam washer with smart diagnostics.",
        "price": 899.0,
        "category": "Appliances",
        "image": "https://images.unsplash.com/photo-1626806787461-102c1bfaaea1",
        "in_stock": True,
    },
    {
        "name": "Microwave Inverter",
        "brand": "Panasonic",
        "description": "Even heating with inverter technology.",
        "price": 189.0,
        "category": "Appliances",
        "image": "https://images.unsplash.com/photo-1574269909862-7e1d70bb8078",
        "in_stock": True,
    },
    {
        "name": "Lumix Camera Strap",
        "brand": "Panasonic",
        "description": "Padded shoulder strap for Lumix cameras.",
        "price": 29.0,
        "category": "Accessories",
        "image": "https://images.unsplash.com/photo-1516035069371-29a1b244cc32",
        "in_stock": True,
    },
]


def seed_products(db: Database, reset: bool = False) -> int:
    """Insert the demo catalogue. Without ``reset`` an existing catalogue is left alone."""
    if reset:
        deleted = db["product"].delete_many({}).deleted_count
        logger.info("Cleared %d existing products", deleted)
    elif db["product"].count_documents({}) > 0:
        logger.info("Products already exist, skipping")
        return 0
    for p in DEMO_PRODUCTS:
        create_document(db, "product", ProductSchema(**p))
    logger.info("Seeded %d products", len(DEMO_PRODUCTS))
    return len(DEMO_PRODUCTS)


def ensure_admin(db: Database, username: str, email: str, password: str) -> Optional[str]:
    if db["user"].find_one({"email": email}):
        return None
    admin = UserSchema(username=username, email=email, password_hash=hash_password(password), role="admin")
    user_id = create_document(db, "user", admin)
    logger.info("Created admin %s", email)
    return user_id


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--reset", action="store_true", help="delete existing products first")
    parser.add_argument("--admin-username", default="admin")
    parser.add_argument("--admin-email")
    parser.add_argument("--admin-password")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    db = get_db()
    ensure_indexes(db)
    seed_products(db, reset=args.reset)
    if args.admin_email and args.admin_password:
        ensure_admin(db, args.admin_username, args.admin_email, args.admin_password)


if __name__ == "__main__":
    main()
