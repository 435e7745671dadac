import os
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Dict, Any

import jwt
from fastapi import FastAPI, HTTPException, Header, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import DuplicateKeyError
from bson import ObjectId

from database import db, create_document, get_documents
import accounts
import schemas as s
import orders as order_service
from categories import build_category_tree, slugify
from reviews import SORT_OPTIONS, rating_distribution, update_seller_rating
from shipping import (
    DEFAULT_ACCOUNT_NUMBER,
    CarrierResponseError,
    PickupForm,
    PickupValidationError,
    ShipmentForm,
    ShipmentValidationError,
    build_pickup_creation_request,
    build_pickup_rate_request,
    build_shipment_request,
    classify_carrier_error,
    friendly_carrier_message,
    is_international,
    normalize_country_code,
    normalize_pickup_creation_response,
    normalize_pickup_rate_response,
    normalize_shipment_response,
)
from ups_client import UPSClient, UPSError, build_locator_request, transform_locations

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("marketplace")

app = FastAPI(title="Auto Parts Marketplace API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "7"))
security = HTTPBearer()

# ---------------------- Utilities ----------------------

def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid ID")

def now_utc():
    return datetime.now(timezone.utc)

def hash_password(pw: str) -> str:
    return hashlib.sha256(pw.encode()).hexdigest()

def serialize(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    return value

def ok(data=None, status_code: int = 200, **extra):
    body = {"success": True, **extra}
    if data is not None:
        body["data"] = serialize(data)
    if status_code != 200:
        return JSONResponse(status_code=status_code, content=jsonable_encoder(body))
    return body

def error_response(status_code: int, message: str, error: Any = None, **extra) -> JSONResponse:
    body = {"success": False, "message": message, "error": error, **extra}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(serialize(body)))

# ---------------------- Error envelope ----------------------

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation error",
                 "error": jsonable_encoder(exc.errors(), custom_encoder={Exception: str})},
    )

@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Server error", "error": str(exc)})

# ---------------------- Auth ----------------------

def create_token(user_id: str, role: str) -> str:
    exp = now_utc() + timedelta(days=JWT_EXPIRE_DAYS)
    return jwt.encode({"id": user_id, "role": role, "exp": exp}, JWT_SECRET, algorithm=JWT_ALGO)

def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    payload = decode_token(credentials.credentials)
    user_id = payload.get("id")
    if not user_id or not ObjectId.is_valid(user_id):
        raise HTTPException(status_code=401, detail="Invalid token payload")
    user = db["user"].find_one({"_id": ObjectId(user_id)})
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return serialize(user)

def require_role(user: dict, *roles: str):
    if user.get("role") not in roles:
        raise HTTPException(status_code=403, detail="Not authorized")

def get_admin(user=Depends(get_current_user)):
    require_role(user, "admin")
    return user

def get_seller(user=Depends(get_current_user)):
    require_role(user, "seller", "admin")
    return user

def public_user(user: dict) -> dict:
    return {k: v for k, v in serialize(user).items() if k != "password_hash"}

# ---------------------- Startup ----------------------

def ensure_indexes(database):
    database["sellerreview"].create_index([("user_id", 1), ("order_id", 1)], unique=True)
    database["sellerreview"].create_index("seller_id")
    database["user"].create_index("email", unique=True)
    database["wishlist"].create_index("user_id", unique=True)
    database["brand"].create_index("name", unique=True)

@app.on_event("startup")
def on_startup():
    if db is None:
        logger.warning("DATABASE_URL / DATABASE_NAME not set, running without a database")
        return
    ensure_indexes(db)

# ---------------------- Root & Health ----------------------

@app.get("/")
def read_root():
    return {"message": "Auto Parts Marketplace API running"}

@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
            try:
                response["collections"] = db.list_collection_names()[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response

@app.get("/schema")
def get_schema():
    def model_fields(m):
        return {k: str(v.annotation) for k, v in getattr(m, "model_fields", {}).items()}
    return {
        "models": {
            "user": model_fields(s.User),
            "address": model_fields(s.Address),
            "paymentmethod": model_fields(s.PaymentMethod),
            "category": model_fields(s.Category),
            "brand": model_fields(s.Brand),
            "product": model_fields(s.Product),
            "order": model_fields(s.Order),
            "sellerreview": model_fields(s.SellerReview),
            "wishlist": model_fields(s.Wishlist),
            "banner": model_fields(s.Banner),
            "notification": model_fields(s.Notification),
            "conversation": model_fields(s.Conversation),
            "message": model_fields(s.Message),
        }
    }

# ---------------------- Users ----------------------

class RegisterBody(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None
    role: str = Field("buyer", pattern="^(buyer|seller)$")
    store_name: Optional[str] = None

class LoginBody(BaseModel):
    email: EmailStr
    password: str

class ProfileBody(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    store_name: Optional[str] = None

@app.post("/api/auth/register")
def register(body: RegisterBody):
    if db["user"].find_one({"email": body.email}):
        raise HTTPException(400, "Email already registered")
    user = s.User(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password_hash=hash_password(body.password),
        phone=body.phone,
        role=body.role,
        store_name=body.store_name,
    )
    user_id = create_document("user", user)
    logger.info("Registered %s %s", body.role, user_id)
    return ok({"token": create_token(user_id, body.role),
               "user": {"_id": user_id, "email": body.email, "role": body.role}}, status_code=201)

@app.post("/api/auth/login")
def login(body: LoginBody):
    user = db["user"].find_one({"email": body.email})
    if not user or user.get("password_hash") != hash_password(body.password):
        raise HTTPException(401, "Invalid credentials")
    return ok({"token": create_token(str(user["_id"]), user.get("role", "buyer")),
               "user": public_user(user)})

@app.get("/api/auth/me")
def me(user=Depends(get_current_user)):
    return ok(public_user(user))

@app.put("/api/users/me")
def update_profile(body: ProfileBody, user=Depends(get_current_user)):
    changes = body.model_dump(exclude_none=True)
    changes["updated_at"] = now_utc()
    db["user"].update_one({"_id": oid(user["_id"])}, {"$set": changes})
    return ok(public_user(db["user"].find_one({"_id": oid(user["_id"])})))

@app.get("/api/sellers/{seller_id}")
def get_seller_profile(seller_id: str):
    seller = db["user"].find_one({"_id": oid(seller_id), "role": {"$in": ["seller", "admin"]}})
    if not seller:
        raise HTTPException(404, "Seller not found")
    return ok({
        "_id": seller["_id"],
        "name": f"{seller.get('first_name', '')} {seller.get('last_name', '')}".strip(),
        "store_name": seller.get("store_name"),
        "rating": seller.get("rating", 0),
        "total_sales": seller.get("total_sales", 0),
        "products": db["product"].count_documents({"seller_id": seller_id}),
    })

@app.get("/api/admin/stats")
def admin_stats(user=Depends(get_admin)):
    return ok({
        "users": db["user"].count_documents({}),
        "sellers": db["user"].count_documents({"role": "seller"}),
        "products": db["product"].count_documents({}),
        "orders": db["order"].count_documents({}),
        "categories": db["category"].count_documents({}),
    })

# ---------------------- Categories ----------------------

class CategoryBody(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    parent_id: Optional[str] = None
    image_url: Optional[str] = None

class CategoryUpdateBody(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[str] = None
    image_url: Optional[str] = None

@app.get("/api/categories")
def list_categories():
    cats = serialize(get_documents("category"))
    return build_category_tree(cats)

@app.get("/api/categories/count")
def count_categories():
    return {"total_categories": db["category"].count_documents({})}

@app.get("/api/categories/{category_id}")
def get_category(category_id: str):
    cat = db["category"].find_one({"_id": oid(category_id)})
    if not cat:
        raise HTTPException(404, "Category not found")
    cat = serialize(cat)
    if cat.get("parent_id"):
        parent = db["category"].find_one({"_id": oid(cat["parent_id"])}, {"name": 1})
        cat["parent"] = serialize(parent)
    return cat

@app.post("/api/categories", status_code=201)
def create_category(body: CategoryBody, user=Depends(get_admin)):
    if body.parent_id and not db["category"].find_one({"_id": oid(body.parent_id)}):
        raise HTTPException(400, "Parent category not found")
    if db["category"].find_one({"name": body.name, "parent_id": body.parent_id}):
        raise HTTPException(400, "Category with this name already exists")
    cid = create_document("category", s.Category(**body.model_dump(), slug=slugify(body.name)))
    return serialize(db["category"].find_one({"_id": ObjectId(cid)}))

@app.put("/api/categories/{category_id}")
def update_category(category_id: str, body: CategoryUpdateBody, user=Depends(get_admin)):
    cat = db["category"].find_one({"_id": oid(category_id)})
    if not cat:
        raise HTTPException(404, "Category not found")
    changes = body.model_dump(exclude_none=True)
    if changes.get("parent_id") == category_id:
        raise HTTPException(400, "A category cannot be its own parent")
    if "name" in changes:
        changes["slug"] = slugify(changes["name"])
    changes["updated_at"] = now_utc()
    db["category"].update_one({"_id": cat["_id"]}, {"$set": changes})
    return serialize(db["category"].find_one({"_id": cat["_id"]}))

@app.delete("/api/categories/{category_id}")
def delete_category(category_id: str, user=Depends(get_admin)):
    cat = db["category"].find_one({"_id": oid(category_id)})
    if not cat:
        raise HTTPException(404, "Category not found")
    if db["category"].count_documents({"parent_id": category_id}) > 0:
        raise HTTPException(400, "Cannot delete category with subcategories. Delete subcategories first.")
    db["category"].delete_one({"_id": cat["_id"]})
    return {"message": "Category deleted successfully"}

# ---------------------- Brands / Models / Versions ----------------------

class NameBody(BaseModel):
    name: str = Field(..., min_length=1)

class BrandBody(BaseModel):
    name: str = Field(..., min_length=1)
    logo: str = ""
    active: bool = True

def get_brand_or_404(brand_id: str) -> dict:
    brand = db["brand"].find_one({"_id": oid(brand_id)})
    if not brand:
        raise HTTPException(404, "Brand not found")
    return brand

def find_model(brand: dict, model_id: str) -> dict:
    for m in brand.get("models", []):
        if str(m["_id"]) == model_id:
            return m
    raise HTTPException(404, "Model not found")

def save_models(brand: dict):
    db["brand"].update_one({"_id": brand["_id"]}, {"$set": {"models": brand["models"], "updated_at": now_utc()}})

@app.get("/api/brands")
def list_brands(active: Optional[bool] = None):
    filt = {} if active is None else {"active": active}
    return ok(list(db["brand"].find(filt).sort("name", 1)))

@app.get("/api/brands/{brand_id}")
def get_brand(brand_id: str):
    return ok(get_brand_or_404(brand_id))

@app.post("/api/brands")
def create_brand(body: BrandBody, user=Depends(get_admin)):
    if db["brand"].find_one({"name": body.name}):
        raise HTTPException(400, "Brand already exists")
    bid = create_document("brand", {**body.model_dump(), "models": []})
    return ok(db["brand"].find_one({"_id": ObjectId(bid)}), status_code=201)

@app.put("/api/brands/{brand_id}")
def update_brand(brand_id: str, body: BrandBody, user=Depends(get_admin)):
    brand = get_brand_or_404(brand_id)
    db["brand"].update_one({"_id": brand["_id"]}, {"$set": {**body.model_dump(), "updated_at": now_utc()}})
    return ok(db["brand"].find_one({"_id": brand["_id"]}))

@app.delete("/api/brands/{brand_id}")
def delete_brand(brand_id: str, user=Depends(get_admin)):
    brand = get_brand_or_404(brand_id)
    db["brand"].delete_one({"_id": brand["_id"]})
    return ok(message="Brand deleted successfully")

@app.post("/api/brands/{brand_id}/models")
def add_model(brand_id: str, body: NameBody, user=Depends(get_admin)):
    brand = get_brand_or_404(brand_id)
    if any(m["name"].lower() == body.name.lower() for m in brand.get("models", [])):
        raise HTTPException(400, "Model already exists for this brand")
    brand.setdefault("models", []).append({"_id": ObjectId(), "name": body.name, "versions": [],
                                           "created_at": now_utc()})
    save_models(brand)
    return ok(brand, status_code=201)

@app.delete("/api/brands/{brand_id}/models/{model_id}")
def delete_model(brand_id: str, model_id: str, user=Depends(get_admin)):
    brand = get_brand_or_404(brand_id)
    find_model(brand, model_id)
    brand["models"] = [m for m in brand["models"] if str(m["_id"]) != model_id]
    save_models(brand)
    return ok(brand)

@app.post("/api/brands/{brand_id}/models/{model_id}/versions")
def add_version(brand_id: str, model_id: str, body: NameBody, user=Depends(get_admin)):
    brand = get_brand_or_404(brand_id)
    model = find_model(brand, model_id)
    if any(v["name"].lower() == body.name.lower() for v in model.get("versions", [])):
        raise HTTPException(400, "Version already exists for this model")
    model.setdefault("versions", []).append({"_id": ObjectId(), "name": body.name, "created_at": now_utc()})
    save_models(brand)
    return ok(brand, status_code=201)

@app.delete("/api/brands/{brand_id}/models/{model_id}/versions/{version_id}")
def delete_version(brand_id: str, model_id: str, version_id: str, user=Depends(get_admin)):
    brand = get_brand_or_404(brand_id)
    model = find_model(brand, model_id)
    before = len(model.get("versions", []))
    model["versions"] = [v for v in model.get("versions", []) if str(v["_id"]) != version_id]
    if len(model["versions"]) == before:
        raise HTTPException(404, "Version not found")
    save_models(brand)
    return ok(brand)

# ---------------------- Products ----------------------

class ProductBody(BaseModel):
    title: str
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    oem_number: Optional[str] = None
    condition: str = Field("used", pattern="^(new|used|refurbished)$")
    category_id: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    version: Optional[str] = None
    images: List[str] = []

class ProductUpdateBody(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    oem_number: Optional[str] = None
    condition: Optional[str] = Field(None, pattern="^(new|used|refurbished)$")
    category_id: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    version: Optional[str] = None
    images: Optional[List[str]] = None

def get_owned_product(product_id: str, user: dict) -> dict:
    prod = db["product"].find_one({"_id": oid(product_id)})
    if not prod:
        raise HTTPException(404, "Product not found")
    if prod.get("seller_id") != user["_id"] and user.get("role") != "admin":
        raise HTTPException(403, "Not authorized")
    return prod

@app.get("/api/products")
def list_products(q: Optional[str] = None, category: Optional[str] = None, brand: Optional[str] = None,
                  model: Optional[str] = None, seller: Optional[str] = None,
                  min_price: Optional[float] = None, max_price: Optional[float] = None,
                  page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100)):
    filt: Dict[str, Any] = {}
    if q:
        filt["$or"] = [
            {"title": {"$regex": q, "$options": "i"}},
            {"oem_number": {"$regex": q, "$options": "i"}},
        ]
    if category:
        filt["category_id"] = category
    if brand:
        filt["brand"] = brand
    if model:
        filt["model"] = model
    if seller:
        filt["seller_id"] = seller
    price_cond = {}
    if min_price is not None:
        price_cond["$gte"] = min_price
    if max_price is not None:
        price_cond["$lte"] = max_price
    if price_cond:
        filt["price"] = price_cond
    total = db["product"].count_documents(filt)
    items = db["product"].find(filt).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
    return ok(list(items), total=total, page=page, pages=(total + limit - 1) // limit)

@app.get("/api/products/{product_id}")
def get_product(product_id: str):
    prod = db["product"].find_one({"_id": oid(product_id)})
    if not prod:
        raise HTTPException(404, "Product not found")
    return ok(prod)

@app.post("/api/products")
def create_product(body: ProductBody, user=Depends(get_seller)):
    product = s.Product(**body.model_dump(), seller_id=user["_id"])
    pid = create_document("product", product)
    return ok(db["product"].find_one({"_id": ObjectId(pid)}), status_code=201)

@app.put("/api/products/{product_id}")
def update_product(product_id: str, body: ProductUpdateBody, user=Depends(get_current_user)):
    prod = get_owned_product(product_id, user)
    changes = body.model_dump(exclude_none=True)
    changes["updated_at"] = now_utc()
    db["product"].update_one({"_id": prod["_id"]}, {"$set": changes})
    return ok(db["product"].find_one({"_id": prod["_id"]}))

@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, user=Depends(get_current_user)):
    prod = get_owned_product(product_id, user)
    db["product"].delete_one({"_id": prod["_id"]})
    return ok(message="Product deleted successfully")

# ---------------------- Orders ----------------------

class OrderItemBody(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)

class AddressBody(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

class OrderBody(BaseModel):
    items: List[OrderItemBody] = Field(..., min_length=1)
    payment_method: str
    shipping_address: Optional[AddressBody] = None
    pickup_point: Optional[Dict[str, Any]] = None
    shipping_method: str = Field("standard", pattern="^(pickup|home|standard|express)$")

class StatusBody(BaseModel):
    status: str

class PaymentStatusBody(BaseModel):
    payment_status: str

def get_order_or_404(order_id: str) -> dict:
    order = db["order"].find_one({"_id": oid(order_id)})
    if not order:
        raise HTTPException(404, "Order not found")
    return order

def check_order_access(order: dict, user: dict, seller_only: bool = False):
    allowed = {order.get("seller_id")} if seller_only else {order.get("seller_id"), order.get("buyer_id")}
    if user["_id"] not in allowed and user.get("role") != "admin":
        raise HTTPException(403, "Not authorized")

def paginate_orders(filt: dict, page: int, limit: int, status: Optional[str]):
    if status:
        filt["status"] = status
    total = db["order"].count_documents(filt)
    cur = db["order"].find(filt).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
    return ok(list(cur), total=total, page=page, pages=(total + limit - 1) // limit)

@app.post("/api/orders")
def create_order(body: OrderBody, user=Depends(get_current_user)):
    for it in body.items:
        oid(it.product_id)
    try:
        order = order_service.create_order(
            db,
            buyer_id=user["_id"],
            items=[it.model_dump() for it in body.items],
            payment_method=body.payment_method,
            shipping_address=body.shipping_address.model_dump() if body.shipping_address else None,
            pickup_point=body.pickup_point,
            shipping_method=body.shipping_method,
        )
    except order_service.OrderStateError as e:
        raise HTTPException(400, str(e))
    return ok(order, status_code=201)

@app.get("/api/orders")
def list_all_orders(status: Optional[str] = None, page: int = Query(1, ge=1),
                    limit: int = Query(10, ge=1, le=100), user=Depends(get_admin)):
    return paginate_orders({}, page, limit, status)

@app.get("/api/orders/mine")
def list_buyer_orders(status: Optional[str] = None, page: int = Query(1, ge=1),
                      limit: int = Query(10, ge=1, le=100), user=Depends(get_current_user)):
    return paginate_orders({"buyer_id": user["_id"]}, page, limit, status)

@app.get("/api/orders/seller")
def list_seller_orders(status: Optional[str] = None, page: int = Query(1, ge=1),
                       limit: int = Query(10, ge=1, le=100), user=Depends(get_seller)):
    return paginate_orders({"seller_id": user["_id"]}, page, limit, status)

@app.get("/api/orders/{order_id}")
def get_order(order_id: str, user=Depends(get_current_user)):
    order = get_order_or_404(order_id)
    check_order_access(order, user)
    return ok(order)

@app.put("/api/orders/{order_id}/status")
def update_order_status(order_id: str, body: StatusBody, user=Depends(get_current_user)):
    order = get_order_or_404(order_id)
    check_order_access(order, user, seller_only=True)
    try:
        return ok(order_service.update_status(db, order, body.status))
    except order_service.OrderStateError as e:
        raise HTTPException(400, str(e))

@app.put("/api/orders/{order_id}/cancel")
def cancel_order(order_id: str, user=Depends(get_current_user)):
    order = get_order_or_404(order_id)
    check_order_access(order, user)
    try:
        return ok(order_service.cancel_order(db, order))
    except order_service.OrderStateError as e:
        raise HTTPException(400, str(e))

@app.put("/api/orders/{order_id}/payment-status")
def update_order_payment_status(order_id: str, body: PaymentStatusBody, user=Depends(get_current_user)):
    order = get_order_or_404(order_id)
    check_order_access(order, user, seller_only=True)
    try:
        return ok(order_service.update_payment_status(db, order, body.payment_status))
    except order_service.OrderStateError as e:
        raise HTTPException(400, str(e))

# ---------------------- Addresses ----------------------

class AddressCreateBody(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    is_default: bool = False

class AddressUpdateBody(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    is_default: Optional[bool] = None

@app.get("/api/addresses")
def list_addresses(user=Depends(get_current_user)):
    return ok(get_documents(accounts.ADDRESSES, {"user_id": user["_id"]}))

@app.get("/api/addresses/default")
def get_default_address(user=Depends(get_current_user)):
    address = accounts.default_address(db, user["_id"])
    if not address:
        raise HTTPException(404, "No default address found")
    return ok(address)

@app.get("/api/addresses/{address_id}")
def get_address(address_id: str, user=Depends(get_current_user)):
    address = db[accounts.ADDRESSES].find_one({"_id": oid(address_id), "user_id": user["_id"]})
    if not address:
        raise HTTPException(404, "Address not found")
    return ok(address)

@app.post("/api/addresses")
def create_address(body: AddressCreateBody, user=Depends(get_current_user)):
    return ok(accounts.create_address(db, user["_id"], body.model_dump()), status_code=201)

@app.put("/api/addresses/{address_id}")
def update_address(address_id: str, body: AddressUpdateBody, user=Depends(get_current_user)):
    address = accounts.update_address(db, user["_id"], oid(address_id), body.model_dump())
    if not address:
        raise HTTPException(404, "Address not found")
    return ok(address)

@app.put("/api/addresses/{address_id}/default")
def set_default_address(address_id: str, user=Depends(get_current_user)):
    address = accounts.set_default_address(db, user["_id"], oid(address_id))
    if not address:
        raise HTTPException(404, "Address not found")
    return ok(address)

@app.delete("/api/addresses/{address_id}")
def delete_address(address_id: str, user=Depends(get_current_user)):
    if not accounts.delete_address(db, user["_id"], oid(address_id)):
        raise HTTPException(404, "Address not found")
    return ok(message="Address deleted successfully")

# ---------------------- Payment methods ----------------------

class PaymentMethodBody(BaseModel):
    stripe_customer_id: str
    stripe_payment_method_id: str
    card_type: str
    last_four_digits: str = Field(..., min_length=4, max_length=4)
    expiration_month: str = Field(..., min_length=1, max_length=2)
    expiration_year: str = Field(..., min_length=4, max_length=4)
    is_default: bool = False
    billing_details: Optional[Dict[str, Any]] = None

class PaymentMethodUpdateBody(BaseModel):
    billing_details: Optional[Dict[str, Any]] = None
    is_default: Optional[bool] = None

@app.get("/api/payment-methods")
def list_payment_methods(user=Depends(get_current_user)):
    return ok(get_documents(accounts.PAYMENT_METHODS, {"user_id": user["_id"]}))

@app.post("/api/payment-methods")
def create_payment_method(body: PaymentMethodBody, user=Depends(get_current_user)):
    existing = db[accounts.PAYMENT_METHODS].find_one(
        {"user_id": user["_id"], "stripe_payment_method_id": body.stripe_payment_method_id})
    if existing:
        raise HTTPException(400, "Payment method already saved")
    return ok(accounts.create_payment_method(db, user["_id"], body.model_dump()), status_code=201)

@app.put("/api/payment-methods/{method_id}")
def update_payment_method(method_id: str, body: PaymentMethodUpdateBody, user=Depends(get_current_user)):
    method = accounts.update_payment_method(db, user["_id"], oid(method_id), body.model_dump())
    if not method:
        raise HTTPException(404, "Payment method not found")
    return ok(method)

@app.put("/api/payment-methods/{method_id}/default")
def set_default_payment_method(method_id: str, user=Depends(get_current_user)):
    method = accounts.set_default_payment_method(db, user["_id"], oid(method_id))
    if not method:
        raise HTTPException(404, "Payment method not found")
    return ok(method)

@app.delete("/api/payment-methods/{method_id}")
def delete_payment_method(method_id: str, user=Depends(get_current_user)):
    if not accounts.delete_payment_method(db, user["_id"], oid(method_id)):
        raise HTTPException(404, "Payment method not found")
    return ok(message="Payment method deleted successfully")

# ---------------------- Seller Reviews ----------------------

class ReviewBody(BaseModel):
    seller_id: str
    order_id: str
    product_id: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)

class ReviewUpdateBody(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)

@app.post("/api/seller-reviews")
def create_seller_review(body: ReviewBody, user=Depends(get_current_user)):
    order = db["order"].find_one({"_id": oid(body.order_id), "buyer_id": user["_id"],
                                  "seller_id": body.seller_id})
    if not order:
        raise HTTPException(404, "Order not found or does not belong to you")
    if order["status"] != "delivered":
        raise HTTPException(400, "You can only review orders that have been delivered")
    if db["sellerreview"].find_one({"user_id": user["_id"], "order_id": body.order_id}):
        raise HTTPException(400, "You have already reviewed this order")
    doc = s.SellerReview(**body.model_dump(), user_id=user["_id"]).model_dump()
    doc["created_at"] = doc["updated_at"] = now_utc()
    try:
        doc["_id"] = db["sellerreview"].insert_one(doc).inserted_id
    except DuplicateKeyError:
        raise HTTPException(400, "You have already reviewed this order")
    rating = update_seller_rating(db, body.seller_id)
    order_service.notify(db, body.seller_id, "New Review", f"You received a {body.rating}-star review",
                         {"review_id": str(doc["_id"])}, type="review")
    return ok({"review": doc, "seller_rating": rating}, status_code=201,
              message="Review added successfully")

@app.get("/api/seller-reviews/seller/{seller_id}")
def list_seller_reviews(seller_id: str, sort: str = "recent", page: int = Query(1, ge=1),
                        limit: int = Query(10, ge=1, le=100)):
    seller = db["user"].find_one({"_id": oid(seller_id)})
    if not seller:
        raise HTTPException(404, "Seller not found")
    filt = {"seller_id": seller_id, "is_visible": True}
    total = db["sellerreview"].count_documents(filt)
    field, direction = SORT_OPTIONS.get(sort, SORT_OPTIONS["recent"])
    reviews = list(db["sellerreview"].find(filt).sort(field, direction).skip((page - 1) * limit).limit(limit))
    distribution = rating_distribution(db["sellerreview"].find(filt, {"rating": 1}))
    return ok({
        "reviews": reviews,
        "pagination": {"total": total, "page": page, "pages": (total + limit - 1) // limit, "limit": limit},
        "stats": {"average": seller.get("rating", 0), "total": total,
                  "distribution": {str(k): v for k, v in distribution.items()}},
        "seller": {
            "_id": seller["_id"],
            "name": f"{seller.get('first_name', '')} {seller.get('last_name', '')}".strip(),
            "store_name": seller.get("store_name"),
            "rating": seller.get("rating", 0),
            "total_sales": seller.get("total_sales", 0),
        },
    })

@app.get("/api/seller-reviews/mine")
def list_my_reviews(user=Depends(get_current_user)):
    reviews = list(db["sellerreview"].find({"user_id": user["_id"]}).sort("created_at", -1))
    return ok(reviews, count=len(reviews))

@app.get("/api/seller-reviews/eligible-orders")
def eligible_orders_for_review(user=Depends(get_current_user)):
    reviewed = {r["order_id"] for r in db["sellerreview"].find({"user_id": user["_id"]}, {"order_id": 1})}
    delivered = db["order"].find({"buyer_id": user["_id"], "status": "delivered"}).sort("updated_at", -1)
    return ok([o for o in delivered if str(o["_id"]) not in reviewed])

def get_own_review(review_id: str, user: dict) -> dict:
    review = db["sellerreview"].find_one({"_id": oid(review_id), "user_id": user["_id"]})
    if not review:
        raise HTTPException(404, "Review not found or you are not authorized to change this review")
    return review

@app.put("/api/seller-reviews/{review_id}")
def update_seller_review(review_id: str, body: ReviewUpdateBody, user=Depends(get_current_user)):
    review = get_own_review(review_id, user)
    changes = body.model_dump(exclude_none=True)
    changes["updated_at"] = now_utc()
    db["sellerreview"].update_one({"_id": review["_id"]}, {"$set": changes})
    rating = update_seller_rating(db, review["seller_id"])
    return ok(db["sellerreview"].find_one({"_id": review["_id"]}), seller_rating=rating,
              message="Review updated successfully")

@app.delete("/api/seller-reviews/{review_id}")
def delete_seller_review(review_id: str, user=Depends(get_current_user)):
    review = get_own_review(review_id, user)
    db["sellerreview"].delete_one({"_id": review["_id"]})
    rating = update_seller_rating(db, review["seller_id"])
    return ok({"deleted_review_id": review_id, "seller_id": review["seller_id"], "seller_rating": rating},
              message="Review deleted successfully")

# ---------------------- Wishlist ----------------------

@app.get("/api/wishlist")
def get_wishlist(user=Depends(get_current_user)):
    w = db["wishlist"].find_one({"user_id": user["_id"]}) or {"user_id": user["_id"], "products": []}
    return ok(w, total_items=len(w.get("products", [])))

@app.get("/api/wishlist/check/{product_id}")
def check_wishlist(product_id: str, user=Depends(get_current_user)):
    w = db["wishlist"].find_one({"user_id": user["_id"]}) or {"products": []}
    return ok({"in_wishlist": any(p["product_id"] == product_id for p in w.get("products", []))})

@app.post("/api/wishlist/{product_id}")
def add_to_wishlist(product_id: str, user=Depends(get_current_user)):
    prod = db["product"].find_one({"_id": oid(product_id)})
    if not prod:
        raise HTTPException(404, "Product not found")
    w = db["wishlist"].find_one({"user_id": user["_id"]}) or {"user_id": user["_id"], "products": []}
    items = w.get("products", [])
    if not any(p["product_id"] == product_id for p in items):
        items.append({"product_id": product_id, "price_at_add": float(prod["price"]), "added_at": now_utc()})
    db["wishlist"].update_one({"user_id": user["_id"]},
                              {"$set": {"products": items, "updated_at": now_utc()}}, upsert=True)
    return ok(db["wishlist"].find_one({"user_id": user["_id"]}), total_items=len(items))

@app.delete("/api/wishlist/{product_id}")
def remove_from_wishlist(product_id: str, user=Depends(get_current_user)):
    w = db["wishlist"].find_one({"user_id": user["_id"]})
    if not w:
        raise HTTPException(404, "Wishlist not found")
    items = [p for p in w.get("products", []) if p["product_id"] != product_id]
    db["wishlist"].update_one({"_id": w["_id"]}, {"$set": {"products": items, "updated_at": now_utc()}})
    return ok(db["wishlist"].find_one({"_id": w["_id"]}), total_items=len(items))

# ---------------------- Banners ----------------------

class BannerBody(BaseModel):
    title: str = Field(..., min_length=1)
    image_url: str = Field(..., min_length=1)
    link: str = "#"
    is_active: bool = True
    position: str = Field("home_top", pattern="^(home_top|home_middle|home_bottom|category_page|sidebar)$")
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

class BannerUpdateBody(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    image_url: Optional[str] = Field(None, min_length=1)
    link: Optional[str] = None
    is_active: Optional[bool] = None
    position: Optional[str] = Field(None, pattern="^(home_top|home_middle|home_bottom|category_page|sidebar)$")
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

def banner_is_live(banner: dict, at: datetime) -> bool:
    start, end = banner.get("start_date"), banner.get("end_date")
    if start and _aware(start) > at:
        return False
    if end and _aware(end) < at:
        return False
    return True

@app.get("/api/banners")
def list_banners(position: Optional[str] = None):
    filt: Dict[str, Any] = {"is_active": True}
    if position:
        filt["position"] = position
    current = now_utc()
    banners = [b for b in db["banner"].find(filt).sort("created_at", -1) if banner_is_live(b, current)]
    return ok(banners)

@app.get("/api/admin/banners")
def list_all_banners(user=Depends(get_admin)):
    return ok(list(db["banner"].find({}).sort("created_at", -1)))

@app.post("/api/banners")
def create_banner(body: BannerBody, user=Depends(get_admin)):
    doc = body.model_dump()
    doc["start_date"] = doc["start_date"] or now_utc()
    doc["end_date"] = doc["end_date"] or now_utc() + timedelta(days=30)
    doc["created_by"] = user["_id"]
    bid = create_document("banner", s.Banner(**doc))
    return ok(db["banner"].find_one({"_id": ObjectId(bid)}), status_code=201)

@app.put("/api/banners/{banner_id}")
def update_banner(banner_id: str, body: BannerUpdateBody, user=Depends(get_admin)):
    changes = body.model_dump(exclude_none=True)
    changes["updated_at"] = now_utc()
    res = db["banner"].update_one({"_id": oid(banner_id)}, {"$set": changes})
    if res.matched_count == 0:
        raise HTTPException(404, "Banner not found")
    return ok(db["banner"].find_one({"_id": oid(banner_id)}))

@app.delete("/api/banners/{banner_id}")
def delete_banner(banner_id: str, user=Depends(get_admin)):
    res = db["banner"].delete_one({"_id": oid(banner_id)})
    if res.deleted_count == 0:
        raise HTTPException(404, "Banner not found")
    return ok(message="Banner deleted successfully")

# ---------------------- Notifications ----------------------

@app.get("/api/notifications")
def list_notifications(unread: bool = False, user=Depends(get_current_user)):
    filt: Dict[str, Any] = {"user_id": user["_id"]}
    if unread:
        filt["read"] = False
    items = list(db["notification"].find(filt).sort("created_at", -1).limit(50))
    return ok(items, unread_count=db["notification"].count_documents({"user_id": user["_id"], "read": False}))

@app.put("/api/notifications/read-all")
def mark_all_notifications_read(user=Depends(get_current_user)):
    res = db["notification"].update_many({"user_id": user["_id"], "read": False}, {"$set": {"read": True}})
    return ok(modified=res.modified_count)

@app.put("/api/notifications/{notification_id}/read")
def mark_notification_read(notification_id: str, user=Depends(get_current_user)):
    res = db["notification"].update_one({"_id": oid(notification_id), "user_id": user["_id"]},
                                        {"$set": {"read": True}})
    if res.matched_count == 0:
        raise HTTPException(404, "Notification not found")
    return ok(message="Notification marked as read")

# ---------------------- Conversations & Messages ----------------------

class ConversationBody(BaseModel):
    recipient_id: str
    product_id: Optional[str] = None
    content: Optional[str] = None

class MessageBody(BaseModel):
    content: str = Field(..., min_length=1)

def get_conversation_for(conversation_id: str, user: dict) -> dict:
    conv = db["conversation"].find_one({"_id": oid(conversation_id)})
    if not conv:
        raise HTTPException(404, "Conversation not found")
    if user["_id"] not in conv.get("participants", []):
        raise HTTPException(403, "Not authorized")
    return conv

def post_message(conv: dict, sender_id: str, content: str) -> dict:
    msg = {"conversation_id": str(conv["_id"]), "sender_id": sender_id, "content": content,
           "read": False, "created_at": now_utc()}
    msg["_id"] = db["message"].insert_one(msg).inserted_id
    db["conversation"].update_one({"_id": conv["_id"]},
                                  {"$set": {"last_message": content, "updated_at": now_utc()}})
    for participant in conv["participants"]:
        if participant != sender_id:
            order_service.notify(db, participant, "New Message", content[:100],
                                 {"conversation_id": str(conv["_id"])}, type="message")
    return msg

@app.post("/api/conversations")
def start_conversation(body: ConversationBody, user=Depends(get_current_user)):
    if body.recipient_id == user["_id"]:
        raise HTTPException(400, "Cannot start a conversation with yourself")
    if not db["user"].find_one({"_id": oid(body.recipient_id)}):
        raise HTTPException(404, "Recipient not found")
    participants = sorted([user["_id"], body.recipient_id])
    conv = db["conversation"].find_one({"participants": participants, "product_id": body.product_id})
    if not conv:
        conv = {"participants": participants, "product_id": body.product_id, "last_message": None,
                "created_at": now_utc(), "updated_at": now_utc()}
        conv["_id"] = db["conversation"].insert_one(conv).inserted_id
    if body.content:
        post_message(conv, user["_id"], body.content)
    return ok(db["conversation"].find_one({"_id": conv["_id"]}), status_code=201)

@app.get("/api/conversations")
def list_conversations(user=Depends(get_current_user)):
    return ok(list(db["conversation"].find({"participants": user["_id"]}).sort("updated_at", -1)))

@app.get("/api/conversations/{conversation_id}/messages")
def list_messages(conversation_id: str, user=Depends(get_current_user)):
    conv = get_conversation_for(conversation_id, user)
    return ok(list(db["message"].find({"conversation_id": str(conv["_id"])}).sort("created_at", 1)))

@app.post("/api/conversations/{conversation_id}/messages")
def send_message(conversation_id: str, body: MessageBody, user=Depends(get_current_user)):
    conv = get_conversation_for(conversation_id, user)
    return ok(post_message(conv, user["_id"], body.content), status_code=201)

@app.put("/api/conversations/{conversation_id}/read")
def mark_conversation_read(conversation_id: str, user=Depends(get_current_user)):
    conv = get_conversation_for(conversation_id, user)
    res = db["message"].update_many(
        {"conversation_id": str(conv["_id"]), "sender_id": {"$ne": user["_id"]}, "read": False},
        {"$set": {"read": True}},
    )
    return ok(modified=res.modified_count)

# ---------------------- UPS ----------------------

_ups_client: Optional[UPSClient] = None

def get_ups_client() -> UPSClient:
    global _ups_client
    if _ups_client is None:
        _ups_client = UPSClient()
    return _ups_client

class LocationParams(BaseModel):
    address: str
    city: str
    state: str
    postal_code: str
    country: str = "US"

class LocationSearchBody(BaseModel):
    access_token: Optional[str] = None
    params: LocationParams

class ShipmentBody(BaseModel):
    order_id: str
    form: ShipmentForm

class PickupBody(BaseModel):
    order_id: str
    form: PickupForm

def get_shippable_order(order_id: str, user: dict) -> dict:
    order = get_order_or_404(order_id)
    check_order_access(order, user, seller_only=True)
    if order["status"] == "cancelled":
        raise HTTPException(400, "Cancelled orders cannot be shipped")
    return order

def carrier_error(e: UPSError, message: str) -> JSONResponse:
    return error_response(e.status_code, message, e.details, raw_error=e.payload)

@app.post("/api/ups/token")
def ups_token(ups: UPSClient = Depends(get_ups_client)):
    try:
        return ups.get_token()
    except UPSError as e:
        return carrier_error(e, "Failed to get UPS access token")

@app.post("/api/ups/locations/search")
def ups_locations(body: LocationSearchBody, user=Depends(get_current_user),
                  ups: UPSClient = Depends(get_ups_client)):
    p = body.params
    request_body = build_locator_request(p.address, p.city, p.state, p.postal_code,
                                         normalize_country_code(p.country))
    try:
        data = ups.search_locations(request_body, access_token=body.access_token)
    except UPSError as e:
        payload = e.payload if isinstance(e.payload, dict) else {}
        description = payload.get("LocatorResponse", {}).get("Response", {}).get("ResponseStatusDescription")
        return carrier_error(e, description or "Failed to fetch UPS locations")
    response = data.get("LocatorResponse", {})
    if response.get("Response", {}).get("ResponseStatusCode") != "1":
        return error_response(502, "Invalid response from UPS API", raw_error=data)
    return ok(locations=transform_locations(response.get("SearchResults")))

@app.post("/api/ups/shipments")
def ups_create_shipment(body: ShipmentBody, user=Depends(get_current_user),
                        ups: UPSClient = Depends(get_ups_client)):
    order = get_shippable_order(body.order_id, user)
    try:
        shipment_request = build_shipment_request(body.form, body.order_id)
    except ShipmentValidationError as e:
        raise HTTPException(400, str(e))
    try:
        data = ups.create_shipment(shipment_request)
        label = normalize_shipment_response(data)
    except UPSError as e:
        kind = classify_carrier_error(e.details)
        international = is_international(body.form.shipper_country, body.form.recipient_country)
        message = friendly_carrier_message(kind, e.details, body.form.account_number, international)
        logger.warning("UPS shipment for order %s failed (%s): %s", body.order_id, kind.value, e.details)
        return carrier_error(e, message)
    except CarrierResponseError as e:
        return error_response(502, str(e))
    order_service.record_shipment(db, order, label.tracking_number)
    logger.info("UPS shipment %s created for order %s", label.tracking_number, body.order_id)
    return ok(label.model_dump(), shipment_response=data)

@app.post("/api/ups/pickuprate")
def ups_pickup_rate(body: PickupBody, user=Depends(get_current_user),
                    ups: UPSClient = Depends(get_ups_client)):
    get_shippable_order(body.order_id, user)
    try:
        rate_request = build_pickup_rate_request(body.form, body.order_id)
    except PickupValidationError as e:
        raise HTTPException(400, str(e))
    try:
        data = ups.rate_pickup(rate_request)
        rate = normalize_pickup_rate_response(data)
    except UPSError as e:
        return carrier_error(e, "Failed to get UPS pickup rates")
    except CarrierResponseError as e:
        return error_response(502, str(e))
    return ok(rate.model_dump(), pickup_response=data)

@app.post("/api/ups/pickupcreation")
def ups_create_pickup(body: PickupBody, user=Depends(get_current_user),
                      ups: UPSClient = Depends(get_ups_client)):
    order = get_shippable_order(body.order_id, user)
    try:
        creation_request = build_pickup_creation_request(body.form, body.order_id)
    except PickupValidationError as e:
        raise HTTPException(400, str(e))
    try:
        data = ups.create_pickup(creation_request)
        confirmation = normalize_pickup_creation_response(data)
    except UPSError as e:
        kind = classify_carrier_error(e.details)
        message = friendly_carrier_message(kind, "Failed to create UPS pickup", body.form.account_number)
        return carrier_error(e, message)
    except CarrierResponseError as e:
        return error_response(502, str(e))
    order_service.record_pickup(db, order, confirmation.prn)
    return ok(confirmation.model_dump(), pickup_creation_response=data)

@app.get("/api/ups/pickup-status/{prn}")
def ups_pickup_status(prn: str, x_ups_account_number: Optional[str] = Header(None),
                      user=Depends(get_current_user), ups: UPSClient = Depends(get_ups_client)):
    account_number = x_ups_account_number or DEFAULT_ACCOUNT_NUMBER
    logger.info("User %s checking pickup %s with account %s", user["_id"], prn, account_number)
    try:
        return ok(pickup_status_response=ups.pickup_status(prn, account_number))
    except UPSError as e:
        return carrier_error(e, "Failed to get UPS pickup status")

@app.get("/api/ups/tracking/{tracking_number}")
def ups_tracking(tracking_number: str, ups: UPSClient = Depends(get_ups_client)):
    try:
        return ups.track(tracking_number)
    except UPSError as e:
        return carrier_error(e, "Failed to fetch tracking details")

# ---------------------- Seed Demo Data ----------------------

DEMO_CATEGORIES = [
    ("Engine", "Engine parts and components", ["Filters", "Belts & Chains", "Gaskets"]),
    ("Brakes", "Brake pads, discs and calipers", ["Brake Pads", "Brake Discs"]),
    ("Suspension", "Shocks, springs and arms", ["Shock Absorbers", "Control Arms"]),
    ("Lighting", "Headlights, tail lights and bulbs", []),
]

DEMO_BRANDS = {
    "Peugeot": {"208": ["1.2 PureTech", "1.5 BlueHDi"], "308": ["1.6 THP"]},
    "Renault": {"Clio": ["1.5 dCi", "0.9 TCe"], "Megane": ["1.3 TCe"]},
    "Volkswagen": {"Golf": ["1.4 TSI", "2.0 TDI"]},
}

@app.post("/api/admin/seed")
def seed(user=Depends(get_admin)):
    if db["category"].count_documents({}) == 0:
        for name, description, children in DEMO_CATEGORIES:
            parent_id = create_document("category", {"name": name, "description": description,
                                                     "slug": slugify(name), "parent_id": None})
            for child in children:
                create_document("category", {"name": child, "description": f"{child} for {name.lower()}",
                                             "slug": slugify(child), "parent_id": parent_id})
    if db["brand"].count_documents({}) == 0:
        for brand, models in DEMO_BRANDS.items():
            create_document("brand", {
                "name": brand,
                "logo": "",
                "active": True,
                "models": [
                    {"_id": ObjectId(), "name": model,
                     "versions": [{"_id": ObjectId(), "name": v} for v in versions]}
                    for model, versions in models.items()
                ],
            })
    return ok({"categories": db["category"].count_documents({}), "brands": db["brand"].count_documents({})})

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
