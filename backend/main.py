from __future__ import annotations
import asyncio
import logging
import os
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional, Union

from bson import ObjectId
from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

import mailer
import storage
from config import settings
from database import (
    count_documents,
    create_document,
    delete_document,
    delete_documents,
    ensure_indexes,
    find_document,
    get_db,
    get_document,
    get_documents,
    parse_object_id,
    update_document,
)
from orders import OrderPlacementError, place_order, set_status
from reviews import recompute_product_rating
from schemas import (
    AuthOut,
    AuthUser,
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    ContactIn,
    FragranceTypeCreate,
    FragranceTypeOut,
    FragranceTypeUpdate,
    LoginIn,
    MessageOut,
    OrderCreate,
    OrderOut,
    Pagination,
    ProductCreate,
    ProductOut,
    ProductPage,
    ProductUpdate,
    RegisterIn,
    Review,
    ReviewCreate,
    ReviewOut,
    ReviewUpdate,
    StatusUpdate,
    TestimonialCreate,
    TestimonialOut,
    TestimonialUpdate,
    UploadManyOut,
    UploadOut,
    User,
    VerifyOut,
)
from security import create_token, current_user, hash_password, is_static_admin, require_admin, verify_password
from seed import seed_catalog, seed_collection

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await ensure_indexes()
    except Exception as e:
        logger.error("Could not prepare database indexes: %s", e)
    yield


app = FastAPI(title="A & N Ittar API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

MAX_IMAGES_PER_UPLOAD = 10

PRODUCT_SORT_FIELDS = {
    "createdAt": "created_at",
    "price": "price",
    "rating": "rating",
    "name": "name",
}

# ---------- Errors ----------

def _field_name(loc) -> str:
    return ".".join(str(part) for part in loc if part not in ("body", "query", "path"))


def _error_message(err: dict) -> str:
    if err.get("type") == "value_error" and err.get("ctx", {}).get("error"):
        return str(err["ctx"]["error"])
    field = _field_name(err.get("loc", ()))
    return f"{field}: {err.get('msg')}" if field else err.get("msg", "Invalid request")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = [{"field": _field_name(e.get("loc", ())), "message": _error_message(e)} for e in exc.errors()]
    message = fields[0]["message"] if fields else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message, "fields": fields})


@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Server error"})


# ---------- Utils ----------

def object_id_or_400(value: str, label: str) -> ObjectId:
    oid = parse_object_id(value)
    if oid is None:
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID format")
    return oid


def changes_of(payload) -> dict:
    return payload.model_dump(exclude_unset=True, exclude_none=True)


async def load_or_404(collection: str, value: str, label: str) -> dict:
    doc = await get_document(collection, object_id_or_400(value, label.lower()))
    if doc is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return doc


# ---------- Health ----------

@app.get("/")
async def root():
    return {"message": "A & N Ittar Backend Running"}


@app.get("/api/health")
async def health():
    return {"status": "OK", "message": "Server is running"}


@app.get("/test")
async def test():
    try:
        db = await get_db()
        colls = await db.list_collection_names()
        return {
            "backend": "✅ Running",
            "database": "✅ Available",
            "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
            "database_name": db.name,
            "connection_status": "Connected",
            "collections": colls,
        }
    except Exception as e:
        logger.warning("Database diagnostic failed: %s", e)
        return {"backend": "✅ Running", "database": "❌ Not Available", "connection_status": "Not Connected", "error": str(e)[:80]}


@app.post("/seed")
async def seed(admin: dict = Depends(require_admin)):
    inserted = await seed_catalog()
    return {"seeded": any(inserted.values()), "inserted": inserted}


# ---------- Auth ----------

@app.post("/api/auth/login", response_model=AuthOut)
async def login(payload: LoginIn):
    email = str(payload.email)
    if is_static_admin(email, payload.password):
        return AuthOut(token=create_token(email, "admin"), user=AuthUser(email=email, role="admin"))

    user = await find_document("user", {"email": email.lower()})
    if user and verify_password(payload.password, user["password"]):
        return AuthOut(token=create_token(user["email"], user["role"]), user=AuthUser(email=user["email"], role=user["role"]))

    logger.warning("Failed login for %s", email)
    raise HTTPException(status_code=401, detail="Invalid credentials")


@app.post("/api/auth/register", response_model=AuthOut, status_code=201)
async def register(payload: RegisterIn, admin: dict = Depends(require_admin)):
    email = str(payload.email).lower()
    if await find_document("user", {"email": email}):
        raise HTTPException(status_code=409, detail="User already exists")
    user = User(email=email, password=hash_password(payload.password), role=payload.role)
    try:
        await create_document("user", user.model_dump())
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="User already exists")
    logger.info("User %s registered by %s", email, admin.get("email"))
    return AuthOut(token=create_token(email, payload.role), user=AuthUser(email=email, role=payload.role))


@app.get("/api/auth/verify", response_model=VerifyOut)
async def verify(user: dict = Depends(current_user)):
    return VerifyOut(valid=True, user=user)


# ---------- Products ----------

def product_filter(search: str, category: str, fragrance_type: str, min_price: Optional[float],
                   max_price: Optional[float], in_stock: Optional[bool]) -> dict:
    filt: dict = {}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filt["$or"] = [{"name": pattern}, {"description": pattern}, {"category": pattern}]
    if category:
        filt["category"] = category
    if fragrance_type:
        filt["fragrance_type"] = fragrance_type
    if min_price is not None or max_price is not None:
        price = {}
        if min_price is not None:
            price["$gte"] = min_price
        if max_price is not None:
            price["$lte"] = max_price
        filt["price"] = price
    if in_stock is not None:
        filt["in_stock"] = in_stock
    return filt


@app.get("/api/products", response_model=Union[ProductPage, List[ProductOut]])
async def list_products(
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    search: str = Query(""),
    category: str = Query(""),
    fragrance_type: str = Query("", alias="fragranceType"),
    min_price: Optional[float] = Query(None, ge=0, alias="minPrice"),
    max_price: Optional[float] = Query(None, ge=0, alias="maxPrice"),
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
):
    filt = product_filter(search, category, fragrance_type, min_price, max_price, in_stock)
    sort = [(PRODUCT_SORT_FIELDS.get(sort_by, "created_at"), 1 if sort_order == "asc" else -1)]

    if not (page and limit):
        docs = await get_documents("product", filt, sort=sort)
        return [ProductOut(**d) for d in docs]

    total = await count_documents("product", filt)
    docs = await get_documents("product", filt, limit=limit, skip=(page - 1) * limit, sort=sort)
    total_pages = (total + limit - 1) // limit
    return ProductPage(
        products=[ProductOut(**d) for d in docs],
        pagination=Pagination(
            current_page=page,
            total_pages=total_pages,
            total_items=total,
            items_per_page=limit,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        ),
    )


@app.get("/api/products/{product_id}", response_model=ProductOut)
async def get_product(product_id: str):
    return ProductOut(**await load_or_404("product", product_id, "Product"))


@app.post("/api/products", response_model=ProductOut, status_code=201)
async def create_product(payload: ProductCreate, admin: dict = Depends(require_admin)):
    saved = await create_document("product", payload.to_document())
    return ProductOut(**saved)


@app.put("/api/products/{product_id}", response_model=ProductOut)
async def update_product(product_id: str, payload: ProductUpdate, admin: dict = Depends(require_admin)):
    updated = await update_document("product", object_id_or_400(product_id, "product"), changes_of(payload))
    if updated is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductOut(**updated)


@app.delete("/api/products/{product_id}", response_model=MessageOut)
async def delete_product(product_id: str, admin: dict = Depends(require_admin)):
    deleted = await delete_document("product", object_id_or_400(product_id, "product"))
    if deleted is None:
        raise HTTPException(status_code=404, detail="Product not found")
    removed = await delete_documents("review", {"product_id": deleted["id"]})
    logger.info("Product %s deleted with %d reviews", deleted["id"], removed)
    return MessageOut(message="Product deleted successfully")


# ---------- Categories ----------

async def all_categories() -> List[CategoryOut]:
    return [CategoryOut(**d) for d in await get_documents("category", sort=[("name", 1)])]


@app.get("/api/categories", response_model=List[CategoryOut])
async def list_categories():
    await seed_collection("category")
    return await all_categories()


@app.post("/api/categories", response_model=List[CategoryOut], status_code=201)
async def create_category(payload: CategoryCreate, admin: dict = Depends(require_admin)):
    if await find_document("category", {"name": payload.name}):
        raise HTTPException(status_code=409, detail="Category already exists")
    try:
        await create_document("category", payload.model_dump())
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Category already exists")
    return await all_categories()


@app.put("/api/categories/{category_id}", response_model=CategoryOut)
async def update_category(category_id: str, payload: CategoryUpdate, admin: dict = Depends(require_admin)):
    try:
        updated = await update_document("category", object_id_or_400(category_id, "category"), changes_of(payload))
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Category name already exists")
    if updated is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return CategoryOut(**updated)


@app.delete("/api/categories/{name}", response_model=MessageOut)
async def delete_category(name: str, admin: dict = Depends(require_admin)):
    db = await get_db()
    deleted = await db["category"].find_one_and_delete({"name": name})
    if deleted is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return MessageOut(message="Category deleted successfully")


# ---------- Fragrance types ----------

@app.get("/api/fragrance-types", response_model=List[FragranceTypeOut])
async def list_fragrance_types():
    await seed_collection("fragrancetype")
    return [FragranceTypeOut(**d) for d in await get_documents("fragrancetype", sort=[("name", 1)])]


@app.post("/api/fragrance-types", response_model=FragranceTypeOut, status_code=201)
async def create_fragrance_type(payload: FragranceTypeCreate, admin: dict = Depends(require_admin)):
    if await find_document("fragrancetype", {"name": payload.name}):
        raise HTTPException(status_code=409, detail="Fragrance type already exists")
    try:
        saved = await create_document("fragrancetype", payload.model_dump())
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Fragrance type already exists")
    return FragranceTypeOut(**saved)


@app.put("/api/fragrance-types/{type_id}", response_model=FragranceTypeOut)
async def update_fragrance_type(type_id: str, payload: FragranceTypeUpdate, admin: dict = Depends(require_admin)):
    try:
        updated = await update_document("fragrancetype", object_id_or_400(type_id, "fragrance type"), changes_of(payload))
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Fragrance type already exists")
    if updated is None:
        raise HTTPException(status_code=404, detail="Fragrance type not found")
    return FragranceTypeOut(**updated)


@app.delete("/api/fragrance-types/{type_id}", response_model=MessageOut)
async def delete_fragrance_type(type_id: str, admin: dict = Depends(require_admin)):
    if await delete_document("fragrancetype", object_id_or_400(type_id, "fragrance type")) is None:
        raise HTTPException(status_code=404, detail="Fragrance type not found")
    return MessageOut(message="Fragrance type deleted successfully")


# ---------- Reviews ----------

@app.get("/api/reviews", response_model=List[ReviewOut])
async def list_reviews(product_id: Optional[str] = Query(None, alias="productId")):
    filt = {}
    if product_id and parse_object_id(product_id) is not None:
        filt["product_id"] = product_id
    docs = await get_documents("review", filt, sort=[("date", -1)])
    return [ReviewOut(**d) for d in docs]


@app.get("/api/reviews/{review_id}", response_model=ReviewOut)
async def get_review(review_id: str):
    return ReviewOut(**await load_or_404("review", review_id, "Review"))


@app.post("/api/reviews", response_model=ReviewOut, status_code=201)
async def create_review(payload: ReviewCreate):
    product = await load_or_404("product", payload.product_id, "Product")
    review = Review(**{**payload.model_dump(), "product_id": product["id"]}, date=datetime.now(timezone.utc))
    saved = await create_document("review", review.model_dump())
    await recompute_product_rating(product["id"])
    return ReviewOut(**saved)


@app.put("/api/reviews/{review_id}", response_model=ReviewOut)
async def update_review(review_id: str, payload: ReviewUpdate, admin: dict = Depends(require_admin)):
    updated = await update_document("review", object_id_or_400(review_id, "review"), changes_of(payload))
    if updated is None:
        raise HTTPException(status_code=404, detail="Review not found")
    await recompute_product_rating(updated["product_id"])
    return ReviewOut(**updated)


@app.delete("/api/reviews/{review_id}", response_model=MessageOut)
async def delete_review(review_id: str, admin: dict = Depends(require_admin)):
    deleted = await delete_document("review", object_id_or_400(review_id, "review"))
    if deleted is None:
        raise HTTPException(status_code=404, detail="Review not found")
    await recompute_product_rating(deleted["product_id"])
    return MessageOut(message="Review deleted successfully")


# ---------- Testimonials ----------

@app.get("/api/testimonials", response_model=List[TestimonialOut])
async def list_testimonials():
    return [TestimonialOut(**d) for d in await get_documents("testimonial", sort=[("created_at", -1)])]


@app.get("/api/testimonials/{testimonial_id}", response_model=TestimonialOut)
async def get_testimonial(testimonial_id: str):
    return TestimonialOut(**await load_or_404("testimonial", testimonial_id, "Testimonial"))


@app.post("/api/testimonials", response_model=TestimonialOut, status_code=201)
async def create_testimonial(payload: TestimonialCreate, admin: dict = Depends(require_admin)):
    return TestimonialOut(**await create_document("testimonial", payload.model_dump()))


@app.put("/api/testimonials/{testimonial_id}", response_model=TestimonialOut)
async def update_testimonial(testimonial_id: str, payload: TestimonialUpdate, admin: dict = Depends(require_admin)):
    updated = await update_document("testimonial", object_id_or_400(testimonial_id, "testimonial"), changes_of(payload))
    if updated is None:
        raise HTTPException(status_code=404, detail="Testimonial not found")
    return TestimonialOut(**updated)


@app.delete("/api/testimonials/{testimonial_id}", response_model=MessageOut)
async def delete_testimonial(testimonial_id: str, admin: dict = Depends(require_admin)):
    if await delete_document("testimonial", object_id_or_400(testimonial_id, "testimonial")) is None:
        raise HTTPException(status_code=404, detail="Testimonial not found")
    return MessageOut(message="Testimonial deleted successfully")


# ---------- Orders ----------

@app.get("/api/orders", response_model=List[OrderOut])
async def list_orders(admin: dict = Depends(require_admin)):
    return [OrderOut(**d) for d in await get_documents("order", sort=[("created_at", -1)])]


@app.get("/api/orders/track/{order_id}", response_model=OrderOut)
async def track_order(order_id: str):
    return OrderOut(**await load_or_404("order", order_id, "Order"))


@app.get("/api/orders/{order_id}", response_model=OrderOut)
async def get_order(order_id: str, admin: dict = Depends(require_admin)):
    return OrderOut(**await load_or_404("order", order_id, "Order"))


@app.post("/api/orders", response_model=OrderOut, status_code=201)
async def create_order(payload: OrderCreate):
    try:
        return await place_order(payload)
    except OrderPlacementError as exc:
        raise HTTPException(status_code=500, detail=exc.message)
    except Exception:
        logger.exception("Error creating order for %s", payload.customer_email)
        raise HTTPException(status_code=500, detail="Server error: Failed to create order. Please try again.")


@app.put("/api/orders/{order_id}/status", response_model=OrderOut)
async def update_order_status(order_id: str, payload: StatusUpdate, admin: dict = Depends(require_admin)):
    updated = await set_status(object_id_or_400(order_id, "order"), payload.status)
    if updated is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return updated


@app.delete("/api/orders/{order_id}", response_model=MessageOut)
async def delete_order(order_id: str, admin: dict = Depends(require_admin)):
    if await delete_document("order", object_id_or_400(order_id, "order")) is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return MessageOut(message="Order deleted successfully")


# ---------- Upload ----------

async def read_image(file: UploadFile) -> bytes:
    if not storage.is_image(file.content_type):
        raise HTTPException(status_code=415, detail="Only image files are allowed!")
    content = await file.read()
    if len(content) > storage.max_upload_bytes():
        raise HTTPException(status_code=413, detail=f"Image exceeds the {settings.MAX_UPLOAD_MB}MB limit")
    return content


async def push_image(file: UploadFile, content: bytes) -> dict:
    try:
        return await run_in_threadpool(storage.upload_image, content, file.filename or "image", file.content_type)
    except storage.StorageError as exc:
        logger.error("Image upload failed for %s: %s", file.filename, exc)
        raise HTTPException(status_code=502, detail="Failed to upload image")


@app.post("/api/upload/image", response_model=UploadOut)
async def upload_image(image: Optional[UploadFile] = File(None), admin: dict = Depends(require_admin)):
    if image is None:
        raise HTTPException(status_code=400, detail="No image file provided")
    content = await read_image(image)
    return UploadOut(**await push_image(image, content))


@app.post("/api/upload/images", response_model=UploadManyOut)
async def upload_images(images: Optional[List[UploadFile]] = File(None), admin: dict = Depends(require_admin)):
    if not images:
        raise HTTPException(status_code=400, detail="No image files provided")
    if len(images) > MAX_IMAGES_PER_UPLOAD:
        raise HTTPException(status_code=400, detail=f"At most {MAX_IMAGES_PER_UPLOAD} images per upload")
    contents = [await read_image(f) for f in images]
    results = await asyncio.gather(*(push_image(f, c) for f, c in zip(images, contents)))
    return UploadManyOut(images=results)


# ---------- Contact ----------

@app.post("/api/contact")
async def contact(payload: ContactIn):
    ok, error = await mailer.send_contact_email(payload)
    if not ok:
        logger.error("Contact message from %s not delivered: %s", payload.email, error)
        raise HTTPException(status_code=500, detail="Failed to send message. Please try again later.")
    return {"success": True, "message": "Your message has been sent successfully. We will get back to you soon!"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
