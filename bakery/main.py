# bakery/main.py
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import cart, catalog, orders, slots, users
from .config import get_settings
from .core import (
    AddToCartIn, AvailabilityIn, CartSyncIn, LoginIn, OrderIn, OrderUpdateIn, PickupSlotIn,
    ProductIn, RegisterIn, UpdateCartIn, UserCreateIn, UserUpdateIn, _user_dict,
)
from .database import get_db, init_db
from .models import User
from .security import get_current_user, get_optional_user, require_admin

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("bakery")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    logger.info("bakery API ready")
    yield


app = FastAPI(title="bakery storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------
# Error handlers
# ---------------------------
@app.exception_handler(RequestValidationError)
async def validation_error(_request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"detail": f"{where}: {msg}" if where else msg})


@app.exception_handler(IntegrityError)
async def integrity_error(request: Request, exc: IntegrityError):
    logger.warning("integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content={"detail": "Conflict with existing data", "details": str(exc.orig)},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error(request: Request, exc: SQLAlchemyError):
    logger.exception("database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Database error", "details": str(exc)})

# ---------------------------
# Auth
# ---------------------------
@app.post("/auth/register", status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    return users.register_logic(db, payload)

@app.post("/auth/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    return users.login_logic(db, payload)

@app.get("/auth/me")
def me(current: User = Depends(get_current_user)):
    return _user_dict(current)

# ---------------------------
# Users
# ---------------------------
@app.get("/users")
def list_users(db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    return users.list_users_logic(db)

@app.get("/users/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    return users.get_user_logic(db, current, user_id)

@app.post("/users", status_code=201)
def create_user(payload: UserCreateIn, db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    return users.create_user_logic(db, payload)

@app.put("/users/{user_id}")
def update_user(user_id: int, payload: UserUpdateIn, db: Session = Depends(get_db),
                current: User = Depends(get_current_user)):
    return users.update_user_logic(db, current, user_id, payload)

@app.delete("/users/{user_id}", status_code=204)
def delete_user(user_id: int, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    users.delete_user_logic(db, current, user_id)
    return Response(status_code=204)

# ---------------------------
# Products
# ---------------------------
@app.get("/products")
def list_products(db: Session = Depends(get_db)):
    return catalog.list_products_logic(db)

@app.get("/products/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)):
    return catalog.get_product_logic(db, product_id)

@app.post("/products", status_code=201)
def create_product(payload: ProductIn, db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    return catalog.create_product_logic(db, payload)

@app.put("/products/{product_id}")
def update_product(product_id: int, payload: ProductIn, db: Session = Depends(get_db),
                   _admin: User = Depends(require_admin)):
    return catalog.update_product_logic(db, product_id, payload)

@app.delete("/products/{product_id}", status_code=204)
def delete_product(product_id: int, db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    catalog.delete_product_logic(db, product_id)
    return Response(status_code=204)

@app.get("/admin/products")
def admin_products(db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    return catalog.list_admin_products_logic(db)

@app.get("/admin/archived-products")
def archived_products(db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    return catalog.list_admin_products_logic(db, archived=True)

# ---------------------------
# Product availabilities (admin)
# ---------------------------
@app.post("/product-availabilities", status_code=201)
def create_availability(payload: AvailabilityIn, db: Session = Depends(get_db),
                        _admin: User = Depends(require_admin)):
    return catalog.create_availability_logic(db, payload)

@app.get("/product-availabilities")
def list_availabilities(
    product_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    return catalog.list_availabilities_logic(db, product_id, start_date, end_date)

@app.get("/product-availabilities/{availability_id}")
def get_availability(availability_id: int, db: Session = Depends(get_db),
                     _admin: User = Depends(require_admin)):
    return catalog.get_availability_logic(db, availability_id)

@app.put("/product-availabilities/{availability_id}")
def update_availability(availability_id: int, payload: AvailabilityIn, db: Session = Depends(get_db),
                        _admin: User = Depends(require_admin)):
    return catalog.update_availability_logic(db, availability_id, payload)

@app.delete("/product-availabilities/{availability_id}", status_code=204)
def delete_availability(availability_id: int, db: Session = Depends(get_db),
                        _admin: User = Depends(require_admin)):
    catalog.delete_availability_logic(db, availability_id)
    return Response(status_code=204)

# ---------------------------
# Pickup slots
# ---------------------------
@app.post("/pickup-slots", status_code=201)
def create_slot(payload: PickupSlotIn, db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    return slots.create_slot_logic(db, payload)

@app.get("/pickup-slots")
def list_slots(
    on_date: Optional[date] = Query(None, alias="date"),
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return slots.list_slots_logic(db, current, on_date=on_date, is_active=is_active)

@app.get("/pickup-slots/{slot_id}")
def get_slot(slot_id: int, db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    return slots.get_slot_logic(db, slot_id)

@app.put("/pickup-slots/{slot_id}")
def update_slot(slot_id: int, payload: PickupSlotIn, db: Session = Depends(get_db),
                _admin: User = Depends(require_admin)):
    return slots.update_slot_logic(db, slot_id, payload)

@app.delete("/pickup-slots/{slot_id}", status_code=204)
def delete_slot(slot_id: int, db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    slots.delete_slot_logic(db, slot_id)
    return Response(status_code=204)

# ---------------------------
# Cart
# ---------------------------
@app.get("/cart")
def view_cart(db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    return cart.view_cart_logic(db, current)

@app.post("/cart/add")
def cart_add(payload: AddToCartIn, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    return cart.cart_add_logic(db, current, payload)

@app.put("/cart/update")
def cart_update(payload: UpdateCartIn, db: Session = Depends(get_db),
                current: User = Depends(get_current_user)):
    return cart.cart_update_logic(db, current, payload)

@app.delete("/cart/items/{product_id}")
def cart_remove(product_id: int, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    return cart.cart_remove_logic(db, current, product_id)

@app.delete("/cart/clear")
def cart_clear(db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    return cart.cart_clear_logic(db, current)

@app.post("/cart/sync")
def cart_sync(payload: CartSyncIn, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    return cart.cart_sync_logic(db, current, payload.items)

# ---------------------------
# Orders
# ---------------------------
@app.post("/orders", status_code=201)
def place_order(payload: OrderIn, db: Session = Depends(get_db),
                current: Optional[User] = Depends(get_optional_user)):
    return orders.place_order_logic(db, current, payload)

@app.get("/orders")
def list_orders(
    user_id: Optional[int] = None,
    status: Optional[str] = None,
    pickup_slot_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    return orders.list_orders_logic(db, current, user_id, status, pickup_slot_id, date_from, date_to)

@app.get("/orders/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    return orders.get_order_logic(db, current, order_id)

@app.put("/orders/{order_id}")
def update_order(order_id: int, payload: OrderUpdateIn, db: Session = Depends(get_db),
                 current: User = Depends(get_current_user)):
    return orders.update_order_logic(db, current, order_id, payload)

@app.delete("/orders/{order_id}", status_code=204)
def delete_order(order_id: int, db: Session = Depends(get_db), _admin: User = Depends(require_admin)):
    orders.delete_order_logic(db, order_id)
    return Response(status_code=204)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("bakery.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
