import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

import database
from auth import resolve_user_id
from errors import AuthenticationError, ShopError, StorageUnavailableError
from inventory import CompensatingUnitOfWork, TransactionalUnitOfWork
from orders import build_order_draft, place_order
from pricing import effective_price, is_on_sale
from schemas import Category, CreateOrderRequest, Product

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
JWT_SECRET = os.getenv("JWT_SECRET", "")
ORDER_TIMEOUT_SECONDS = float(os.getenv("ORDER_TIMEOUT_SECONDS", "5"))
MONGO_TRANSACTIONS = os.getenv("MONGO_TRANSACTIONS", "true").strip().lower() not in ("0", "false", "no")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
)
logger = logging.getLogger("shop")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes(database.db)
    else:
        logger.warning("DATABASE_URL/DATABASE_NAME not set, storage endpoints will answer 503")
    yield


app = FastAPI(title="Shop API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handlers

@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "invalid request body"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s failed", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "internal server error"})


# Dependencies

def get_db():
    if database.db is None:
        raise StorageUnavailableError()
    return database.db


def get_unit_of_work(db=Depends(get_db)):
    if MONGO_TRANSACTIONS:
        return TransactionalUnitOfWork(db.client, db, ORDER_TIMEOUT_SECONDS)
    return CompensatingUnitOfWork(db, ORDER_TIMEOUT_SECONDS)


# Utilities

def to_str_id(doc: dict):
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def serialize_product(doc: dict) -> dict:
    """Public view of a product document with sale fields resolved."""
    d = to_str_id(doc)
    category = d.get("category")
    if isinstance(category, str):
        category = [category.strip()] if category.strip() else []
    stock = d.get("stock")
    stock = int(stock) if isinstance(stock, (int, float)) else 0
    price = float(d.get("price") or 0.0)
    sale_enabled = bool(d.get("saleEnabled", False))
    sale_price = d.get("salePrice")

    d.pop("isDeleted", None)
    d.update({
        "category": category or [],
        "stock": stock,
        "inStock": stock > 0,
        "saleEnabled": sale_enabled,
        "salePrice": sale_price,
        "isOnSale": is_on_sale(price, sale_enabled, sale_price),
        "effectivePrice": effective_price(price, sale_enabled, sale_price),
    })
    return d


@app.get("/")
def read_root():
    return {"message": "Shop backend is running"}


# Catalog

@app.get("/products")
def list_products(
    category: Optional[str] = None,
    limit: int = Query(50, ge=1, le=100),
    db=Depends(get_db),
):
    filt = {"isActive": {"$ne": False}, "isDeleted": {"$ne": True}}
    if category and category.strip():
        filt["category"] = {"$in": [category.strip()]}
    products = db["product"].find(filt).sort("createdAt", -1).limit(limit)
    return [serialize_product(p) for p in products]


@app.get("/products/campaign")
def list_campaign_products(limit: int = Query(50, ge=1, le=100), db=Depends(get_db)):
    filt = {"isActive": True, "isCampaign": True, "isDeleted": {"$ne": True}}
    products = db["product"].find(filt).sort("createdAt", -1).limit(limit)
    return [serialize_product(p) for p in products]


class SeedRequest(BaseModel):
    force: bool = False


SAMPLE_PRODUCTS = [
    {
        "name": "Classic Tee",
        "description": "Soft cotton unisex t-shirt",
        "price": 19.99,
        "category": ["Apparel"],
        "stock": 40,
    },
    {
        "name": "Minimal Backpack",
        "description": "Lightweight everyday backpack",
        "price": 49.0,
        "category": ["Bags"],
        "stock": 12,
        "saleEnabled": True,
        "salePrice": 39.0,
        "isCampaign": True,
    },
    {
        "name": "Wireless Earbuds",
        "description": "Noise-isolating Bluetooth earbuds",
        "price": 59.99,
        "category": ["Electronics"],
        "stock": 5,
    },
    {
        "name": "Ceramic Mug",
        "description": "12oz matte finish mug",
        "price": 12.5,
        "category": ["Home"],
        "stock": 0,
    },
]


@app.get("/categories")
def list_categories(db=Depends(get_db)):
    categories = db["category"].find({"isActive": True}).sort("name", 1)
    return [to_str_id(c) for c in categories]


@app.post("/products/seed")
def seed_products(payload: SeedRequest, db=Depends(get_db)):
    count = db["product"].count_documents({})
    if count > 0 and not payload.force:
        return {"inserted": 0, "message": "Products already exist"}

    if payload.force:
        db["product"].delete_many({})
        db["category"].delete_many({})

    try:
        products = [Product(**p) for p in SAMPLE_PRODUCTS]
        names = sorted({name for p in products for name in p.category})
        categories = [Category(name=name) for name in names]
    except ValidationError:
        logger.exception("Sample catalog failed validation")
        raise ShopError("internal server error")
    inserted = [database.create_document("product", p) for p in products]
    for category in categories:
        if db["category"].count_documents({"name": category.name}) == 0:
            database.create_document("category", category)
    logger.info("Seeded %d products, %d categories", len(inserted), len(categories))
    return {"inserted": len(inserted), "categories": len(categories)}


# Orders

@app.post("/orders", status_code=201)
def create_order(
    payload: CreateOrderRequest,
    authorization: Optional[str] = Header(None),
    unit_of_work=Depends(get_unit_of_work),
):
    user_id = resolve_user_id(authorization, JWT_SECRET)
    draft = build_order_draft(payload)
    _, order_id = place_order(unit_of_work, draft, user_id)
    return {"orderId": order_id, "message": "order created"}


@app.get("/orders", dependencies=[Depends(get_db)])
def list_orders(
    authorization: Optional[str] = Header(None),
    limit: int = Query(50, ge=1, le=100),
):
    user_id = resolve_user_id(authorization, JWT_SECRET)
    if user_id is None:
        raise AuthenticationError("missing token")
    orders = database.get_documents("order", {"userId": user_id}, limit=limit)
    return [to_str_id(o) for o in orders]


@app.get("/test")
def test_database():
    """Test endpoint to check if database is available and accessible"""
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "transactions": "✅ Enabled" if MONGO_TRANSACTIONS else "⚠️  Compensation mode",
        "connection_status": "Not Connected",
        "collections": [],
    }

    if database.db is None:
        return response

    response["database"] = "✅ Available"
    try:
        collections = database.db.list_collection_names()
        response["collections"] = collections[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"

    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
