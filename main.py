##########
# Imports
##########
from fastapi import FastAPI, Depends, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from typing import Optional
import logging
# MongoDB
from pymongo import ASCENDING, DESCENDING, ReturnDocument
import pymongo.errors

import config
import database
from database import db
from errors import DuplicateEntity, DuplicateReview, NotFound, ValidationError, register_error_handlers
from schemas import (
    Coupon,
    CouponCreate,
    CouponUpdate,
    Product,
    ProductCreate,
    ProductStatus,
    ProductType,
    ProductUpdate,
    Review,
    ReviewCreate,
    RoleUpdate,
    ToggleRequest,
    TokenRequest,
    User,
    UserCreate,
    UserStatus,
)
from utils.auth_utils import (
    create_access_token,
    normalize_email,
    optional_token,
    require_matching_email,
    require_token,
    revoke_token,
)
from utils.logging_utils import setup_logging
from utils.mongo_utils import parse_object_id, serialize_doc, serialize_docs
from utils.toggle_utils import toggle_membership

logger = logging.getLogger("prodvent.api")


#####################
# FastAPI App Setup
#####################
app = FastAPI(title="ProdVent", description="Product discovery, voting and moderation API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count"],
)

register_error_handlers(app)


######################
# Utility Functions
######################
async def get_product_or_404(product_id: str) -> dict:
    product = await db.products.find_one({"_id": parse_object_id(product_id, "Product")})
    if not product:
        raise NotFound("Product not found")
    return product


async def update_product_fields(product_id: str, fields: dict) -> dict:
    """$set fields on a product and return the updated record"""
    product = await db.products.find_one_and_update(
        {"_id": parse_object_id(product_id, "Product")},
        {"$set": fields},
        return_document=ReturnDocument.AFTER,
    )
    if not product:
        raise NotFound("Product not found")
    return serialize_doc(product)


async def update_user_fields(email: str, fields: dict) -> dict:
    """$set fields on an existing user; unknown emails are not created"""
    user = await db.users.find_one_and_update(
        {"email": normalize_email(email)},
        {"$set": fields},
        return_document=ReturnDocument.AFTER,
    )
    if not user:
        raise NotFound("User not found")
    return serialize_doc(user)


##############
# Startup Hook
##############
@app.on_event("startup")
async def startup_event():
    """Set up logging, check the database and create indexes"""
    setup_logging()
    try:
        await database.ping(db)
        await database.ensure_indexes(db)
    except pymongo.errors.PyMongoError:
        logger.error("Database not reachable at startup", exc_info=True)


##########
# Routes
##########
@app.get("/", response_class=PlainTextResponse)
async def home():
    return "ProdVent server is running!"


##########
# Authentication
##########
@app.post("/jwt")
async def issue_token(payload: TokenRequest):
    """Sign a token for the given user payload"""
    token = create_access_token(payload.model_dump())
    logger.info("Issued token for %s", payload.email)
    return {"token": token}


@app.post("/logout")
async def logout(claims: dict = Depends(require_token)):
    """Revoke the token used for this request"""
    if "jti" not in claims or "exp" not in claims:
        raise ValidationError("Token cannot be revoked")
    await revoke_token(claims)
    return {"revoked": True}


##################
# Product Listings
##################
@app.get("/products/featured")
async def featured_products():
    """Newest featured products"""
    products = await db.products.find(
        {"type": ProductType.FEATURED.value}
    ).sort("timestamp", DESCENDING).limit(config.FEATURED_LIMIT).to_list(None)
    return serialize_docs(products)


@app.get("/trending-product")
async def trending_products():
    """Most voted products"""
    products = await db.products.find().sort("vote", DESCENDING).limit(config.TRENDING_LIMIT).to_list(None)
    return serialize_docs(products)


@app.get("/all-products")
async def all_products(
    response: Response,
    status_filter: Optional[ProductStatus] = Query(None, alias="status"),
    tag: Optional[str] = None,
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=config.MAX_PAGE_SIZE),
):
    """All products, newest first; paginated only when page or limit is given"""
    query = {}
    if status_filter:
        query["status"] = status_filter.value
    if tag:
        query["tags"] = tag

    cursor = db.products.find(query).sort("timestamp", DESCENDING)
    if page or limit:
        page = page or 1
        limit = limit or config.DEFAULT_PAGE_SIZE
        cursor = cursor.skip((page - 1) * limit).limit(limit)
    products = await cursor.to_list(None)

    # Total count for pagination
    total = await db.products.count_documents(query)
    response.headers["X-Total-Count"] = str(total)
    return serialize_docs(products)


@app.get("/product/{product_id}")
async def get_product(product_id: str):
    return serialize_doc(await get_product_or_404(product_id))


@app.get("/my-product/{email}")
async def my_products(email: str, claims: dict = Depends(require_token)):
    """Products submitted by the token's owner"""
    require_matching_email(claims, email)
    products = await db.products.find(
        {"userEmail": normalize_email(email)}
    ).sort("timestamp", DESCENDING).to_list(None)
    return serialize_docs(products)


@app.get("/reported")
async def reported_products(claims: Optional[dict] = Depends(optional_token)):
    """Products reported at least once, most reported first"""
    if claims:
        logger.debug("Reported queue requested by %s", claims["email"])
    products = await db.products.find({"report": {"$gt": 0}}).sort("report", DESCENDING).to_list(None)
    return serialize_docs(products)


##################
# Product Management
##################
@app.post("/add-product", status_code=status.HTTP_201_CREATED)
async def add_product(body: ProductCreate):
    """Store a new product awaiting moderation"""
    product_doc = Product(**body.model_dump()).to_document()
    result = await db.products.insert_one(product_doc)
    product_doc["_id"] = result.inserted_id
    logger.info("Product %s added by %s", result.inserted_id, body.user_email)
    return serialize_doc(product_doc)


@app.patch("/update-product/{product_id}")
async def update_product(product_id: str, body: ProductUpdate):
    update_data = body.to_document(exclude_unset=True)
    if not update_data:
        raise ValidationError("No product fields to update")
    return await update_product_fields(product_id, update_data)


@app.delete("/delete-product/{product_id}")
async def delete_product(product_id: str):
    result = await db.products.delete_one({"_id": parse_object_id(product_id, "Product")})
    if result.deleted_count == 0:
        raise NotFound("Product not found")
    logger.info("Product %s deleted", product_id)
    return {"acknowledged": result.acknowledged, "deletedCount": result.deleted_count}


#####################
# Voting & Reporting
#####################
@app.patch("/product/upvote/{product_id}")
async def upvote_product(product_id: str, body: ToggleRequest):
    """Vote for a product, or take the vote back if already given"""
    product = await toggle_membership(
        db.products, parse_object_id(product_id, "Product"), "likedUsers", "vote", body.actor
    )
    return serialize_doc(product)


@app.patch("/product/report/{product_id}")
async def report_product(product_id: str, body: ToggleRequest):
    """Report a product, or withdraw the report if already made"""
    product = await toggle_membership(
        db.products, parse_object_id(product_id, "Product"), "reportedBy", "report", body.actor
    )
    return serialize_doc(product)


##############
# Moderation
##############
@app.patch("/accept-product/{product_id}")
async def accept_product(product_id: str):
    return await update_product_fields(product_id, {"status": ProductStatus.ACCEPTED.value})


@app.patch("/reject-product/{product_id}")
async def reject_product(product_id: str):
    return await update_product_fields(product_id, {"status": ProductStatus.REJECTED.value})


@app.patch("/featured/{product_id}")
async def feature_product(product_id: str):
    return await update_product_fields(product_id, {"type": ProductType.FEATURED.value})


###########
# Reviews
###########
@app.post("/product/{product_id}/reviews", status_code=status.HTTP_201_CREATED)
async def add_review(product_id: str, body: ReviewCreate):
    """Save a review; one per author and product"""
    product = await get_product_or_404(product_id)
    product_key = str(product["_id"])

    existing = await db.reviews.find_one({"productId": product_key, "email": body.email})
    if existing:
        raise DuplicateReview()

    review_doc = Review(product_id=product_key, **body.model_dump()).to_document()
    try:
        result = await db.reviews.insert_one(review_doc)
    except pymongo.errors.DuplicateKeyError:
        raise DuplicateReview()
    review_doc["_id"] = result.inserted_id
    return serialize_doc(review_doc)


@app.get("/product/{product_id}/reviews")
async def product_reviews(product_id: str):
    reviews = await db.reviews.find({"productId": product_id}).sort("createdAt", DESCENDING).to_list(None)
    return serialize_docs(reviews)


#########
# Users
#########
@app.post("/user", status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate):
    """Save a user if the email is not registered yet"""
    if await db.users.find_one({"email": body.email}):
        raise DuplicateEntity("User already exists")

    user_doc = User(**body.model_dump()).to_document()
    try:
        result = await db.users.insert_one(user_doc)
    except pymongo.errors.DuplicateKeyError:
        raise DuplicateEntity("User already exists")
    user_doc["_id"] = result.inserted_id
    logger.info("User %s created", body.email)
    return serialize_doc(user_doc)


@app.get("/user/{email}")
async def get_user(email: str):
    user = await db.users.find_one({"email": normalize_email(email)})
    if not user:
        raise NotFound("User not found")
    return serialize_doc(user)


@app.patch("/user/verify/{email}")
async def verify_user(email: str):
    return await update_user_fields(email, {"status": UserStatus.VERIFIED.value})


@app.get("/users")
async def list_users(claims: dict = Depends(require_token)):
    users = await db.users.find().sort("createdAt", ASCENDING).to_list(None)
    return serialize_docs(users)


@app.patch("/users/{email}/role")
async def set_user_role(email: str, body: RoleUpdate):
    user = await update_user_fields(email, {"role": body.role.value})
    logger.info("Role of %s set to %s", email, body.role.value)
    return user


###########
# Coupons
###########
async def get_coupon_or_404(coupon_id: str) -> dict:
    coupon = await db.coupons.find_one({"_id": parse_object_id(coupon_id, "Coupon")})
    if not coupon:
        raise NotFound("Coupon not found")
    return coupon


@app.post("/add-coupon", status_code=status.HTTP_201_CREATED)
async def add_coupon(body: CouponCreate):
    coupon_doc = Coupon(**body.model_dump()).to_document()
    result = await db.coupons.insert_one(coupon_doc)
    coupon_doc["_id"] = result.inserted_id
    return serialize_doc(coupon_doc)


@app.get("/coupons")
async def list_coupons():
    """All coupons, soonest to expire first"""
    coupons = await db.coupons.find().sort("expiryDate", ASCENDING).to_list(None)
    return serialize_docs(coupons)


@app.get("/coupon/{coupon_id}")
async def get_coupon(coupon_id: str):
    return serialize_doc(await get_coupon_or_404(coupon_id))


@app.patch("/update-coupon/{coupon_id}")
async def update_coupon(coupon_id: str, body: CouponUpdate):
    update_data = body.to_document(exclude_unset=True, exclude_none=True)
    if not update_data:
        raise ValidationError("No coupon fields to update")
    coupon = await db.coupons.find_one_and_update(
        {"_id": parse_object_id(coupon_id, "Coupon")},
        {"$set": update_data},
        return_document=ReturnDocument.AFTER,
    )
    if not coupon:
        raise NotFound("Coupon not found")
    return serialize_doc(coupon)


@app.delete("/delete-coupon/{coupon_id}")
async def delete_coupon(coupon_id: str):
    result = await db.coupons.delete_one({"_id": parse_object_id(coupon_id, "Coupon")})
    if result.deleted_count == 0:
        raise NotFound("Coupon not found")
    return {"acknowledged": result.acknowledged, "deletedCount": result.deleted_count}


###############
# Entry Point
###############
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
