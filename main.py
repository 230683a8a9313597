import hashlib
import logging
import math
import re
import secrets
import sys
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr, Field, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
import mailer
import pricing
from catalog import (
    canonical_category,
    normalize_product,
    review_stats,
    sanitize_images,
    sanitize_path,
    unique_slug,
)
from database import create_document, db, serialize_doc
from payments import GatewayError, RazorpayGateway, get_gateway
from schemas import (
    USERNAME_PATTERN,
    ContactMessage,
    Order as OrderSchema,
    OrderItem,
    Product as ProductSchema,
    ShippingInfo,
    User as UserSchema,
)

logger = logging.getLogger("aether")


def setup_logging():
    logger.setLevel(config.LOG_LEVEL)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - [%(levelname)-7s] - %(message)s"))
        logger.addHandler(handler)


setup_logging()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

app = FastAPI(title="ÆTHER Storefront API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CLIENT_URLS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
)


# Error responses

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    message = f"{errors[0]['field']}: {errors[0]['message']}" if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "message": message, "errors": errors})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Something went wrong!"})


# Utilities

def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # pymongo hands back naive UTC datetimes
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = now_utc() + (expires_delta or timedelta(minutes=config.JWT_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Not authorized, invalid or expired token")


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def public_user(user: dict) -> Dict[str, Any]:
    return {
        "id": str(user.get("_id") or user.get("id")),
        "name": user.get("name"),
        "username": user.get("username"),
        "email": user.get("email"),
        "is_admin": bool(user.get("is_admin", False)),
    }


def get_current_user(authorization: Optional[str] = Header(default=None)):
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="No token provided")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Token missing")
    payload = decode_token(token)
    user_id = payload.get("sub")
    if not user_id or not ObjectId.is_valid(user_id):
        raise HTTPException(status_code=401, detail="Invalid token")
    user = db["user"].find_one({"_id": ObjectId(user_id)})
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return serialize_doc(user)


def require_admin(current_user: dict = Depends(get_current_user)):
    if not current_user.get("is_admin"):
        raise HTTPException(status_code=403, detail="Access denied, admin only")
    return current_user


# Health

@app.get("/")
def read_root():
    return {"status": "ok", "message": "ÆTHER backend is running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": "✅ Set" if config.DATABASE_NAME else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
            response["collections"] = db.list_collection_names()
            response["database"] = "✅ Connected & Working"
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Auth

class RegisterInput(BaseModel):
    name: str = Field(..., min_length=1)
    username: str = Field(..., min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginInput(BaseModel):
    login: str = Field(..., min_length=1, description="Email or username")
    password: str = Field(..., min_length=1)


class CheckUserInput(BaseModel):
    email: Optional[str] = None
    username: Optional[str] = None


class ForgotPasswordInput(BaseModel):
    email: EmailStr


class ResetPasswordInput(BaseModel):
    password: str = Field(..., min_length=6)


@app.post("/api/auth/register", status_code=201)
def register(payload: RegisterInput):
    email = payload.email.lower()
    existing = db["user"].find_one({"$or": [{"email": email}, {"username": payload.username}]})
    if existing:
        msg = "Email already registered" if existing.get("email") == email else "Username already taken"
        raise HTTPException(status_code=400, detail=msg)
    user_model = UserSchema(
        name=payload.name.strip(),
        username=payload.username,
        email=email,
        password_hash=hash_password(payload.password),
    )
    doc = user_model.model_dump()
    doc.update({"created_at": now_utc(), "updated_at": now_utc()})
    result = db["user"].insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Registered user %s", payload.username)
    return {
        "success": True,
        "message": "User registered successfully",
        "user": public_user(doc),
        "token": create_access_token({"sub": str(result.inserted_id)}),
    }


@app.post("/api/auth/login")
def login(payload: LoginInput):
    login_value = payload.login.strip()
    query = {"email": login_value.lower()} if "@" in login_value else {"username": login_value}
    user = db["user"].find_one(query)
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {
        "success": True,
        "message": "Login successful",
        "user": public_user(user),
        "token": create_access_token({"sub": str(user["_id"])}),
    }


@app.post("/api/auth/logout")
def logout():
    # Tokens are stateless; the client discards its copy.
    return {"success": True, "message": "Logged out successfully"}


@app.get("/api/auth/profile")
def profile(current_user: dict = Depends(get_current_user)):
    return {"success": True, "user": public_user(current_user)}


@app.post("/api/auth/check-user")
def check_user(payload: CheckUserInput):
    query: Dict[str, Any] = {}
    if payload.email:
        query["email"] = payload.email.lower()
    if payload.username:
        query["username"] = payload.username
    if not query:
        raise HTTPException(status_code=400, detail="Email or username required")
    user = db["user"].find_one(query)
    return {"success": True, "exists": user is not None, "user": public_user(user) if user else None}


@app.post("/api/auth/forgot-password")
def forgot_password(payload: ForgotPasswordInput):
    generic = {"success": True, "message": "If that email is registered, a reset link has been sent"}
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user:
        return generic
    token = secrets.token_urlsafe(32)
    expires = now_utc() + timedelta(minutes=config.PASSWORD_RESET_EXPIRE_MINUTES)
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"reset_password_token": hash_reset_token(token), "reset_password_expires": expires}},
    )
    reset_link = f"{config.CLIENT_URLS[0]}/reset-password/{token}"
    ok, error = mailer.send_password_reset_email(user["email"], reset_link)
    if not ok:
        logger.error("Password reset email for %s failed: %s", user["email"], error)
        raise HTTPException(status_code=500, detail="Failed to send reset email")
    return generic


@app.post("/api/auth/reset-password/{token}")
def reset_password(token: str, payload: ResetPasswordInput):
    user = db["user"].find_one({"reset_password_token": hash_reset_token(token)})
    expires = user.get("reset_password_expires") if user else None
    if not user or not expires or as_utc(expires) < now_utc():
        raise HTTPException(status_code=400, detail="Reset token is invalid or has expired")
    db["user"].update_one(
        {"_id": user["_id"]},
        {
            "$set": {"password_hash": hash_password(payload.password), "updated_at": now_utc()},
            "$unset": {"reset_password_token": "", "reset_password_expires": ""},
        },
    )
    return {"success": True, "message": "Password has been reset"}


# Products

class ProductIn(BaseModel):
    name: str = Field(..., min_length=1)
    category: str
    brand: str = "Aether"
    price: float = Field(..., ge=0)
    condition: Literal["New", "Used"] = "New"
    images: List[str] = Field(..., min_length=1)
    thumbnail: Optional[str] = None
    description: str = ""
    sizes: List[str] = Field(default_factory=list)
    stock: int = Field(0, ge=0)
    badge: Optional[str] = None

    @field_validator("category")
    @classmethod
    def _category(cls, v: str) -> str:
        return canonical_category(v)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    condition: Optional[Literal["New", "Used"]] = None
    images: Optional[List[str]] = Field(None, min_length=1)
    thumbnail: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    sizes: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0)
    badge: Optional[str] = None

    # Omitted fields are left alone; an explicit null on a required field is rejected.
    @field_validator("name", "category", "price", "condition", "images", "thumbnail", "stock", mode="before")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v

    @field_validator("category")
    @classmethod
    def _category(cls, v: Optional[str]) -> Optional[str]:
        return canonical_category(v) if v is not None else v


class ReviewIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)


def find_product(product_id: str) -> dict:
    if not ObjectId.is_valid(product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    product = db["product"].find_one({"_id": ObjectId(product_id)})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.get("/api/products")
def list_products(
    category: Optional[str] = None,
    exclude: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
):
    query: Dict[str, Any] = {}
    if category:
        query["category"] = {"$regex": f"^{re.escape(category)}$", "$options": "i"}
    if exclude and ObjectId.is_valid(exclude):
        query["_id"] = {"$ne": ObjectId(exclude)}

    total = db["product"].count_documents(query)
    cursor = db["product"].find(query).sort("created_at", -1).skip((page - 1) * limit).limit(limit)
    return {
        "products": [normalize_product(p) for p in cursor],
        "page": page,
        "pages": math.ceil(total / limit),
        "total": total,
    }


@app.get("/api/products/slug/{slug}")
def get_product_by_slug(slug: str):
    product = db["product"].find_one({"slug": slug})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return normalize_product(product, with_reviews=True)


@app.get("/api/products/{product_id}")
def get_product(product_id: str):
    return normalize_product(find_product(product_id), with_reviews=True)


@app.post("/api/products", status_code=201)
def create_product(data: ProductIn, current_user: dict = Depends(require_admin)):
    images = sanitize_images(data.images)
    if not images:
        raise HTTPException(status_code=400, detail="At least one image URL must be provided")
    product = ProductSchema(
        **data.model_dump(exclude={"images", "thumbnail"}),
        slug=unique_slug(db["product"], data.name),
        images=images,
        thumbnail=sanitize_path(data.thumbnail) or images[0],
    )
    doc = product.model_dump()
    doc.update({"created_at": now_utc(), "updated_at": now_utc()})
    res = db["product"].insert_one(doc)
    logger.info("Product %s created by %s", doc["slug"], current_user.get("username"))
    return normalize_product(db["product"].find_one({"_id": res.inserted_id}))


@app.put("/api/products/{product_id}")
def update_product(product_id: str, data: ProductUpdate, current_user: dict = Depends(require_admin)):
    product = find_product(product_id)
    update_dict = data.model_dump(exclude_unset=True)
    if not update_dict:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "images" in update_dict:
        update_dict["images"] = sanitize_images(update_dict["images"] or [])
        if not update_dict["images"]:
            raise HTTPException(status_code=400, detail="At least one image URL must be provided")
    if update_dict.get("thumbnail"):
        update_dict["thumbnail"] = sanitize_path(update_dict["thumbnail"])
    for key, default in (("brand", "Aether"), ("description", ""), ("sizes", [])):
        if key in update_dict and update_dict[key] is None:
            update_dict[key] = default
    update_dict.update(review_stats(product.get("reviews") or []))
    update_dict["updated_at"] = now_utc()
    db["product"].update_one({"_id": product["_id"]}, {"$set": update_dict})
    return normalize_product(db["product"].find_one({"_id": product["_id"]}))


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, current_user: dict = Depends(require_admin)):
    product = find_product(product_id)
    db["product"].delete_one({"_id": product["_id"]})
    logger.info("Product %s deleted by %s", product.get("slug"), current_user.get("username"))
    return {"success": True, "message": "Product deleted"}


@app.get("/api/products/{product_id}/reviews")
def list_reviews(product_id: str):
    product = find_product(product_id)
    return serialize_doc(product.get("reviews") or [])


@app.post("/api/products/{product_id}/reviews", status_code=201)
def add_review(product_id: str, payload: ReviewIn, current_user: dict = Depends(get_current_user)):
    product = find_product(product_id)
    reviews = product.get("reviews") or []
    if any(r.get("user_id") == current_user["id"] for r in reviews):
        raise HTTPException(status_code=400, detail="You have already reviewed this product")
    review = {
        "user_id": current_user["id"],
        "name": current_user.get("name", ""),
        "rating": payload.rating,
        "comment": payload.comment,
        "created_at": now_utc(),
    }
    reviews.append(review)
    db["product"].update_one(
        {"_id": product["_id"]},
        {"$set": {"reviews": reviews, **review_stats(reviews), "updated_at": now_utc()}},
    )
    return {"success": True, "message": "Review added", "review": review}


# Cart

class AddToCartInput(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    size: Optional[str] = ""


class UpdateCartItemInput(BaseModel):
    quantity: int = Field(..., ge=1)


def cart_response(cart: Optional[dict]) -> Dict[str, Any]:
    items = (cart or {}).get("items", [])
    ids = [ObjectId(it["product_id"]) for it in items if ObjectId.is_valid(it.get("product_id", ""))]
    products = {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": ids}})} if ids else {}
    out = []
    for it in items:
        prod = products.get(it.get("product_id"))
        out.append({
            "id": str(it["_id"]),
            "product": normalize_product(prod) if prod else None,
            "quantity": int(it.get("quantity", 1)),
            "size": it.get("size") or "",
        })
    summary = pricing.summarize(
        {"price": it["product"]["price"] if it["product"] else 0, "quantity": it["quantity"]} for it in out
    )
    return {"items": out, "summary": summary}


def find_cart(user_id: str) -> dict:
    cart = db["cart"].find_one({"user_id": user_id})
    if not cart:
        raise HTTPException(status_code=404, detail="Cart not found")
    return cart


def save_cart_items(cart_id, items: List[dict]) -> dict:
    db["cart"].update_one({"_id": cart_id}, {"$set": {"items": items, "updated_at": now_utc()}})
    return db["cart"].find_one({"_id": cart_id})


@app.get("/api/cart")
def get_cart(current_user: dict = Depends(get_current_user)):
    return cart_response(db["cart"].find_one({"user_id": current_user["id"]}))


@app.post("/api/cart", status_code=201)
def add_to_cart(item: AddToCartInput, current_user: dict = Depends(get_current_user)):
    find_product(item.product_id)
    size = item.size or ""
    db["cart"].update_one(
        {"user_id": current_user["id"]},
        {"$setOnInsert": {"items": [], "created_at": now_utc()}},
        upsert=True,
    )
    cart = db["cart"].find_one({"user_id": current_user["id"]})
    items = cart.get("items", [])
    # same product in the same size is one line
    for it in items:
        if it["product_id"] == item.product_id and (it.get("size") or "") == size:
            it["quantity"] = int(it.get("quantity", 1)) + item.quantity
            break
    else:
        items.append({"_id": ObjectId(), "product_id": item.product_id, "quantity": item.quantity, "size": size})
    return cart_response(save_cart_items(cart["_id"], items))


@app.put("/api/cart/item/{item_id}")
def update_cart_item(item_id: str, payload: UpdateCartItemInput, current_user: dict = Depends(get_current_user)):
    cart = find_cart(current_user["id"])
    items = cart.get("items", [])
    line = next((it for it in items if str(it["_id"]) == item_id), None)
    if line is None:
        raise HTTPException(status_code=404, detail="Item not found")
    line["quantity"] = payload.quantity
    return cart_response(save_cart_items(cart["_id"], items))


@app.delete("/api/cart/item/{item_id}")
def remove_cart_item(item_id: str, current_user: dict = Depends(get_current_user)):
    cart = find_cart(current_user["id"])
    items = cart.get("items", [])
    remaining = [it for it in items if str(it["_id"]) != item_id]
    if len(remaining) == len(items):
        raise HTTPException(status_code=404, detail="Item not found")
    return cart_response(save_cart_items(cart["_id"], remaining))


@app.delete("/api/cart")
def clear_cart(current_user: dict = Depends(get_current_user)):
    db["cart"].update_one(
        {"user_id": current_user["id"]},
        {"$set": {"items": [], "updated_at": now_utc()}},
        upsert=True,
    )
    return cart_response(None)


# Wishlist

def wishlist_response(wishlist: Optional[dict]) -> Dict[str, Any]:
    ids = [ObjectId(pid) for pid in (wishlist or {}).get("products", []) if ObjectId.is_valid(pid)]
    found = {str(p["_id"]): p for p in db["product"].find({"_id": {"$in": ids}})} if ids else {}
    products = [normalize_product(found[str(i)]) for i in ids if str(i) in found]
    return {"products": products}


@app.get("/api/wishlist")
def get_wishlist(current_user: dict = Depends(get_current_user)):
    return wishlist_response(db["wishlist"].find_one({"user_id": current_user["id"]}))


@app.post("/api/wishlist/{product_id}", status_code=201)
def add_to_wishlist(product_id: str, current_user: dict = Depends(get_current_user)):
    find_product(product_id)
    db["wishlist"].update_one(
        {"user_id": current_user["id"]},
        {"$addToSet": {"products": product_id}, "$set": {"updated_at": now_utc()}},
        upsert=True,
    )
    return wishlist_response(db["wishlist"].find_one({"user_id": current_user["id"]}))


@app.delete("/api/wishlist/{product_id}")
def remove_from_wishlist(product_id: str, current_user: dict = Depends(get_current_user)):
    wishlist = db["wishlist"].find_one({"user_id": current_user["id"]})
    if not wishlist:
        raise HTTPException(status_code=404, detail="Wishlist not found")
    products = [pid for pid in wishlist.get("products", []) if pid != product_id]
    db["wishlist"].update_one({"_id": wishlist["_id"]}, {"$set": {"products": products, "updated_at": now_utc()}})
    return wishlist_response(db["wishlist"].find_one({"_id": wishlist["_id"]}))


# Checkout & payments

class CheckoutItem(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    size: Optional[str] = ""


class CheckoutInput(BaseModel):
    items: List[CheckoutItem]
    shipping: ShippingInfo = Field(default_factory=ShippingInfo)


class VerifyPaymentInput(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    order_id: Optional[str] = None


def snapshot_items(items: List[CheckoutItem]):
    """Freeze current product name, price and image into order lines and price them."""
    if not items:
        raise HTTPException(status_code=400, detail="Cart is empty")
    lines = []
    for it in items:
        prod = find_product(it.product_id)
        lines.append(OrderItem(
            product_id=it.product_id,
            name=prod.get("name", ""),
            price=float(prod.get("price", 0)),
            quantity=it.quantity,
            size=it.size or "",
            image=sanitize_path(prod.get("thumbnail")) or "",
        ))
    totals = pricing.summarize(line.model_dump() for line in lines)
    return lines, totals


def insert_order(user_id: str, lines: List[OrderItem], totals: dict, shipping: ShippingInfo,
                 provider: str, razorpay_order_id: str = "") -> dict:
    order = OrderSchema(
        user_id=user_id,
        items=lines,
        shipping=shipping,
        payment_provider=provider,
        payment_status="pending",
        razorpay_order_id=razorpay_order_id,
        subtotal=totals["subtotal"],
        shipping_fee=totals["shipping"],
        tax=totals["tax"],
        total=totals["total"],
    )
    doc = order.model_dump()
    doc.update({"created_at": now_utc(), "updated_at": now_utc()})
    res = db["order"].insert_one(doc)
    return serialize_doc(db["order"].find_one({"_id": res.inserted_id}))


@app.get("/api/payments/test")
def payments_status(gateway: Optional[RazorpayGateway] = Depends(get_gateway)):
    return {
        "message": "Payments API is live",
        "razorpay_configured": gateway is not None,
        "key": gateway.key_id if gateway else None,
    }


@app.post("/api/payments/razorpay/order")
def create_razorpay_order(
    payload: CheckoutInput,
    current_user: dict = Depends(get_current_user),
    gateway: Optional[RazorpayGateway] = Depends(get_gateway),
):
    lines, totals = snapshot_items(payload.items)
    if gateway is None:
        raise HTTPException(status_code=500, detail="Payment gateway not configured")
    try:
        rzp_order = gateway.create_order(
            amount=pricing.to_minor_units(totals["total"]),
            currency=config.CURRENCY,
            receipt=f"aether_{int(time.time() * 1000)}",
            notes={"user_id": current_user["id"], "email": payload.shipping.email or current_user.get("email", "")},
        )
    except GatewayError as exc:
        logger.error("Order creation error: %s", exc)
        raise HTTPException(status_code=500, detail="Payment order creation failed")

    order = insert_order(current_user["id"], lines, totals, payload.shipping, "razorpay", rzp_order["id"])
    logger.info("Order %s pending on gateway order %s", order["id"], rzp_order["id"])
    return {"success": True, "razorpay_order": rzp_order, "order": order, "key": gateway.key_id}


@app.post("/api/payments/cod/order", status_code=201)
def create_cod_order(payload: CheckoutInput, current_user: dict = Depends(get_current_user)):
    lines, totals = snapshot_items(payload.items)
    order = insert_order(current_user["id"], lines, totals, payload.shipping, "cod")
    logger.info("COD order %s created for user %s", order["id"], current_user["id"])
    return {"success": True, "order": order}


@app.post("/api/payments/razorpay/verify")
def verify_razorpay_payment(payload: VerifyPaymentInput, gateway: Optional[RazorpayGateway] = Depends(get_gateway)):
    if not (payload.razorpay_order_id and payload.razorpay_payment_id and payload.razorpay_signature and payload.order_id):
        raise HTTPException(status_code=400, detail="Missing verification data")
    if gateway is None:
        raise HTTPException(status_code=500, detail="Payment gateway not configured")

    if not gateway.verify_signature(payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature):
        logger.warning("Signature mismatch for gateway order %s", payload.razorpay_order_id)
        raise HTTPException(status_code=400, detail="Signature mismatch")

    order = db["order"].find_one({"_id": ObjectId(payload.order_id)}) if ObjectId.is_valid(payload.order_id) else None
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order.get("razorpay_order_id") != payload.razorpay_order_id:
        raise HTTPException(status_code=400, detail="Order does not match payment")

    db["order"].update_one(
        {"_id": order["_id"]},
        {"$set": {
            "payment_status": "paid",
            "payment_id": payload.razorpay_payment_id,
            "razorpay_signature": payload.razorpay_signature,
            "updated_at": now_utc(),
        }},
    )
    return {"success": True, "message": "Payment verified", "order": serialize_doc(db["order"].find_one({"_id": order["_id"]}))}


@app.get("/api/payments/my-orders")
def my_orders(current_user: dict = Depends(get_current_user)):
    cursor = db["order"].find({"user_id": current_user["id"]}).sort("created_at", -1)
    return {"success": True, "orders": [serialize_doc(o) for o in cursor]}


# Contact

@app.post("/api/contact")
def contact(msg: ContactMessage):
    create_document("contactmessage", msg)
    ok, error = mailer.send_contact_emails(msg.name, msg.email, msg.message)
    if not ok:
        logger.error("Contact email error: %s", error)
        raise HTTPException(status_code=500, detail="Failed to send message.")
    return {"success": True, "message": "Message sent successfully and confirmation email delivered!"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
