import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import cart as cart_engine
import catalog
import favorites as favorites_engine
import orders as order_engine
import reviews as review_engine
from auth import Identity, authenticate_user, get_current_identity, list_users, register_user, require_admin
from config import settings
from database import ensure_indexes, get_db
from errors import AppError, InternalError
from schemas import OrderStatus, Product as ProductSchema, Role, check_email

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes(get_db())
    yield


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

router = APIRouter()


# Error responses are always {"message": ...}

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    parts = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        parts.append(f"{'.'.join(loc)}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(status_code=400, content={"message": "; ".join(parts) or "Invalid request"})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Database error"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": InternalError.default_message})


# API models

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterInput(CamelModel):
    username: str = Field(..., min_length=1)
    email: str
    password: str = Field(..., min_length=1)
    role: Optional[Role] = None

    @field_validator("email")
    @classmethod
    def email_is_valid(cls, value: str) -> str:
        return check_email(value)


class LoginInput(CamelModel):
    email_or_username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AuthResponse(CamelModel):
    token: str
    user_id: str
    role: str


class ProductIn(CamelModel):
    name: str
    description: str
    price: float = Field(..., ge=0)
    brand: str
    category: str
    image: str
    in_stock: bool = True


class ProductUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    brand: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = None
    in_stock: Optional[bool] = None


class ProductOut(CamelModel):
    id: str
    name: str
    description: str
    price: float
    brand: str
    category: str
    image: str
    in_stock: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductPage(CamelModel):
    products: List[ProductOut]
    current_page: int
    total_pages: int
    total_products: int


class AddToCartInput(CamelModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class UpdateCartInput(CamelModel):
    # 0 removes the line
    quantity: int = Field(..., ge=0)


class CartLineOut(CamelModel):
    product_id: str
    quantity: int
    product: Optional[ProductOut] = None


class CartOut(CamelModel):
    id: str
    user_id: str
    items: List[CartLineOut]


class CreateOrderInput(CamelModel):
    shipping_address: str = Field(..., min_length=1)


class StatusUpdateInput(CamelModel):
    status: OrderStatus


class OrderItemOut(CamelModel):
    product_id: str
    quantity: int
    price: float
    product: Optional[ProductOut] = None


class OrderOut(CamelModel):
    id: str
    user_id: str
    items: List[OrderItemOut]
    total_amount: float
    status: str
    shipping_address: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReviewInput(CamelModel):
    product_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class ReviewOut(CamelModel):
    id: str
    user_id: str
    username: Optional[str] = None
    product_id: str
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


class UserOut(CamelModel):
    id: str
    username: str
    email: str
    role: str
    favorites: List[ProductOut] = []
    created_at: Optional[datetime] = None


class FavoriteToggleOut(CamelModel):
    message: str
    added: bool


def _csv(value: Optional[str]) -> List[str]:
    return [v for v in (value or "").split(",") if v]


# Routes
@app.get("/")
def read_root():
    return {"message": "Storefront API"}


# Auth
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterInput, db: Database = Depends(get_db)):
    role = payload.role if (payload.role and settings.ALLOW_ADMIN_SIGNUP) else "user"
    return register_user(db, payload.username, payload.email, payload.password, role)


@router.post("/auth/login", response_model=AuthResponse)
def login(payload: LoginInput, db: Database = Depends(get_db)):
    return authenticate_user(db, payload.email_or_username, payload.password)


@router.get("/user/profile")
def profile(identity: Identity = Depends(get_current_identity)):
    return {"message": "You have access to this protected route", "userId": identity.user_id}


# Products
@router.get("/products", response_model=ProductPage)
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.PRODUCTS_PAGE_SIZE, ge=1, le=100),
    brands: Optional[str] = None,
    categories: Optional[str] = None,
    brand: Optional[str] = None,
    db: Database = Depends(get_db),
):
    return catalog.list_products(db, page, limit, _csv(brands), _csv(categories), brand)


@router.get("/products/brands", response_model=List[str])
def get_brands(db: Database = Depends(get_db)):
    return catalog.list_brands(db)


@router.get("/products/categories", response_model=List[str])
def get_categories(db: Database = Depends(get_db)):
    return catalog.list_categories(db)


@router.get("/products/search", response_model=List[ProductOut])
def search_products(
    query: Optional[str] = None,
    category: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    db: Database = Depends(get_db),
):
    return catalog.search_products(db, query, category, min_price, max_price)


@router.get("/products/details/{product_id}", response_model=ProductOut)
def get_product(product_id: str, db: Database = Depends(get_db)):
    return catalog.get_product(db, product_id)


@router.post("/products", response_model=ProductOut, status_code=201)
def create_product(data: ProductIn, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    return catalog.create_product(db, ProductSchema(**data.model_dump()))


@router.put("/products/{product_id}", response_model=ProductOut)
def update_product(product_id: str, data: ProductUpdate, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    return catalog.update_product(db, product_id, data.model_dump(exclude_unset=True))


@router.delete("/products/{product_id}")
def delete_product(product_id: str, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    catalog.delete_product(db, product_id)
    return {"message": "Product deleted successfully"}


# Cart
@router.get("/cart", response_model=CartOut)
def get_cart(identity: Identity = Depends(get_current_identity), db: Database = Depends(get_db)):
    return cart_engine.get_cart_view(db, identity.user_id)


@router.post("/cart/add", response_model=CartOut)
def add_to_cart(item: AddToCartInput, identity: Identity = Depends(get_current_identity), db: Database = Depends(get_db)):
    cart = cart_engine.add_item(db, identity.user_id, item.product_id, item.quantity)
    return cart_engine.cart_view(db, cart)


@router.delete("/cart/remove/{product_id}", response_model=CartOut)
def remove_from_cart(product_id: str, identity: Identity = Depends(get_current_identity), db: Database = Depends(get_db)):
    cart = cart_engine.remove_item(db, identity.user_id, product_id)
    return cart_engine.cart_view(db, cart)


@router.put("/cart/update/{product_id}", response_model=CartOut)
def update_cart_item(product_id: str, data: UpdateCartInput, identity: Identity = Depends(get_current_identity), db: Database = Depends(get_db)):
    cart = cart_engine.update_quantity(db, identity.user_id, product_id, data.quantity)
    return cart_engine.cart_view(db, cart)


# Favorites
@router.get("/favorites", response_model=List[ProductOut])
def get_favorites(identity: Identity = Depends(get_current_identity), db: Database = Depends(get_db)):
    return favorites_engine.list_favorites(db, identity.user_id)


@router.post("/favorites/{product_id}", response_model=FavoriteToggleOut)
def toggle_favorite(product_id: str, identity: Identity = Depends(get_current_identity), db: Database = Depends(get_db)):
    result = favorites_engine.toggle_favorite(db, identity.user_id, product_id)
    return {"message": "Favorites updated successfully", **result}


# Orders
@router.post("/orders", response_model=OrderOut, status_code=201)
def create_order(data: CreateOrderInput, identity: Identity = Depends(get_current_identity), db: Database = Depends(get_db)):
    return order_engine.create_order(db, identity.user_id, data.shipping_address)


@router.get("/orders", response_model=List[OrderOut])
def get_user_orders(identity: Identity = Depends(get_current_identity), db: Database = Depends(get_db)):
    return order_engine.get_user_orders(db, identity.user_id)


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: str, identity: Identity = Depends(get_current_identity), db: Database = Depends(get_db)):
    return order_engine.get_order(db, order_id, identity.user_id, identity.role)


@router.patch("/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(order_id: str, data: StatusUpdateInput, admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    return order_engine.update_status(db, order_id, data.status, admin.role)


# Reviews
@router.post("/reviews", response_model=ReviewOut, status_code=201)
def create_review(data: ReviewInput, identity: Identity = Depends(get_current_identity), db: Database = Depends(get_db)):
    return review_engine.create_review(db, identity.user_id, data.product_id, data.rating, data.comment)


@router.get("/reviews/product/{product_id}", response_model=List[ReviewOut])
def get_product_reviews(product_id: str, db: Database = Depends(get_db)):
    return review_engine.list_product_reviews(db, product_id)


# Admin
@router.get("/admin/users", response_model=List[UserOut])
def get_all_users(admin: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    return list_users(db)


app.include_router(router, prefix=settings.API_PREFIX)


if __name__ == "__main__":
    import os

    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
