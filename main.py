import logging
from typing import List, Optional

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

import errors
from auth import (
    GOOGLE_PROVIDER, create_user, get_current_claims, get_current_user, hash_password,
    public_user, require_admin, session_response, verify_password,
)
from catalog import Catalog
from database import Database, find_user_by_email
from deps import get_catalog, get_db, get_google_verifier, get_mailer, get_settings
from invoice import invoice_filename, render_invoice
from mailer import Mailer
from pricing import place_order
from schemas import Address, CartItem, Discount, Order, check_email
from settings import Settings

config = get_settings()

logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s - %(name)s - [%(levelname)-7s] - %(message)s",
)
logger = logging.getLogger("adventure_works")

app = FastAPI(title="Adventure Works API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===================== Error responses =====================
@app.exception_handler(errors.ShopError)
async def shop_error_handler(request: Request, exc: errors.ShopError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    message = errors.ValidationError.message
    problems = exc.errors()
    if problems:
        field = ".".join(str(part) for part in problems[0].get("loc", ()) if part != "body")
        detail = problems[0].get("msg", "")
        message = f"{message}: {field} {detail}" if field else f"{message}: {detail}"
    return JSONResponse(status_code=400, content={"error": message.strip()})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": errors.InternalError.message})


# ============ Request models ==========
class SignupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, value):
        return check_email(value)


class SigninRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class GoogleSigninRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id_token: Optional[str] = Field(None, alias="idToken")


class CreateOrderRequest(BaseModel):
    items: List[CartItem] = []
    address: Optional[Address] = None
    discount: Optional[Discount] = None
    shipping: Optional[float] = Field(0, allow_inf_nan=False)


class UpdateOrderStatusRequest(BaseModel):
    status: Optional[str] = None


# ===================== Public Endpoints =====================
@app.get("/api/health")
def health():
    return {"ok": True}


# ===================== Catalog =====================
@app.get("/api/products")
def list_products(category: Optional[str] = None, tag: Optional[str] = None, q: Optional[str] = None,
                  catalog: Catalog = Depends(get_catalog)):
    return catalog.list_products(category=category, tag=tag, q=q)


@app.get("/api/products/{product_id}")
def get_product(product_id: str, catalog: Catalog = Depends(get_catalog)):
    product = catalog.get(product_id)
    if not product:
        raise errors.NotFoundError()
    return product


@app.get("/api/categories")
def list_categories(catalog: Catalog = Depends(get_catalog)):
    return catalog.categories


@app.get("/api/deals")
def list_deals(catalog: Catalog = Depends(get_catalog)):
    return catalog.deals()


# ===================== Auth =====================
@app.post("/api/auth/signup")
def signup(payload: SignupRequest, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    if not payload.email or not payload.password:
        raise errors.ValidationError("Missing fields")
    user = create_user(db, payload.email, payload.name or "", password_hash=hash_password(payload.password))
    return session_response(user, settings)


@app.post("/api/auth/signin")
def signin(payload: SigninRequest, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    user = find_user_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.get("password_hash")):
        logger.info("Failed sign-in attempt")
        raise errors.AuthenticationError("Invalid credentials")
    return session_response(user, settings)


@app.post("/api/auth/google")
def google_signin(payload: GoogleSigninRequest, db: Database = Depends(get_db),
                  settings: Settings = Depends(get_settings), verifier=Depends(get_google_verifier)):
    if not payload.id_token:
        raise errors.ValidationError("Missing idToken")
    claims = verifier.verify(payload.id_token)
    email = claims.get("email")
    if not email:
        raise errors.ValidationError("Google token missing email")
    user = find_user_by_email(db, email)
    if not user:
        try:
            user = create_user(db, email, claims.get("name") or "", provider=GOOGLE_PROVIDER)
        except errors.ConflictError:
            # Created by a concurrent request for the same address
            user = find_user_by_email(db, email)
    return session_response(user, settings)


@app.get("/api/me")
def me(user: dict = Depends(get_current_user)):
    return public_user(user)


# ===================== Orders =====================
def _owned_order(db: Database, order_id: str, claims: dict) -> dict:
    order = db.get_document_by_id("order", order_id)
    if not order or order.get("user_id") != claims["sub"]:
        raise errors.NotFoundError("Order not found")
    return order


def _render(order: Order) -> bytes:
    try:
        return render_invoice(order)
    except Exception as exc:
        logger.exception("Rendering invoice for order %s failed", order.id)
        raise errors.InternalError("Error generating invoice") from exc


@app.post("/api/orders", status_code=201)
def create_order(payload: CreateOrderRequest, claims: dict = Depends(get_current_claims),
                 db: Database = Depends(get_db), catalog: Catalog = Depends(get_catalog)):
    return place_order(db, catalog, claims["sub"], payload.items, payload.address, payload.discount, payload.shipping)


@app.get("/api/orders")
def list_my_orders(claims: dict = Depends(get_current_claims), db: Database = Depends(get_db)):
    return db.get_documents("order", {"user_id": claims["sub"]})


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, claims: dict = Depends(get_current_claims), db: Database = Depends(get_db)):
    return _owned_order(db, order_id, claims)


@app.get("/api/orders/{order_id}/invoice.pdf")
def get_invoice(order_id: str, claims: dict = Depends(get_current_claims), db: Database = Depends(get_db)):
    order = Order.model_validate(_owned_order(db, order_id, claims))
    pdf = _render(order)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{invoice_filename(order)}"'},
    )


@app.post("/api/orders/{order_id}/send-invoice")
def send_invoice(order_id: str, claims: dict = Depends(get_current_claims), db: Database = Depends(get_db),
                 mailer: Mailer = Depends(get_mailer)):
    order = Order.model_validate(_owned_order(db, order_id, claims))
    if not order.address or not order.address.email:
        raise errors.ValidationError("No email address provided")
    mailer.ensure_configured()
    mailer.send_invoice(order, _render(order))
    return {"message": "Invoice sent successfully"}


# ===================== Admin =====================
@app.get("/api/admin/users")
def admin_list_users(admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return [public_user(user) for user in db.get_documents("user")]


@app.delete("/api/admin/users/{user_id}")
def admin_delete_user(user_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    with db.collection_lock("user"):
        user = db.get_document_by_id("user", user_id)
        if not user:
            raise errors.NotFoundError("User not found")
        if user.get("is_admin"):
            raise errors.AuthorizationError("Cannot delete admin user")
        db.delete_document("user", user_id)
    logger.info("Admin %s deleted user %s", admin["id"], user_id)
    return {"message": "User deleted successfully"}


@app.get("/api/admin/orders")
def admin_list_orders(admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return db.get_documents("order")


@app.patch("/api/admin/orders/{order_id}")
def admin_update_order_status(order_id: str, payload: UpdateOrderStatusRequest,
                              admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    if not db.get_document_by_id("order", order_id):
        raise errors.NotFoundError("Order not found")
    if not payload.status:
        raise errors.ValidationError("Status is required")
    db.update_document("order", order_id, {"status": payload.status})
    logger.info("Admin %s set order %s status to %s", admin["id"], order_id, payload.status)
    return {"message": "Order status updated successfully"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.port)
