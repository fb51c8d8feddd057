# bakery/core.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .models import (
    ORDER_FLOW, CartItem, Order, OrderItem, PickupSlot, Product, ProductAvailability, User,
)

# ---------------------------
# Request schemas
# ---------------------------
# Required fields are Optional here on purpose: the logic layer reports
# missing values with the API's own 400 messages.

# upper bound for a single cart or order line
MAX_LINE_QUANTITY = 999

class RegisterIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None

class UserCreateIn(RegisterIn):
    is_admin: bool = False

class UserUpdateIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    is_admin: Optional[bool] = None

class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class ProductIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price_cents: Optional[int] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    stock: Optional[int] = None
    status: Optional[str] = None

class AvailabilityIn(BaseModel):
    product_id: Optional[int] = None
    week_start: Optional[datetime] = None
    week_end: Optional[datetime] = None
    max_quantity: Optional[int] = None

class PickupSlotIn(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    max_orders: Optional[int] = None
    is_active: Optional[bool] = None

class AddToCartIn(BaseModel):
    product_id: Optional[int] = None
    quantity: int = Field(1, le=MAX_LINE_QUANTITY)

class UpdateCartIn(BaseModel):
    product_id: Optional[int] = None
    quantity: Optional[int] = Field(None, le=MAX_LINE_QUANTITY)

class CartSyncIn(BaseModel):
    # raw guest cart straight from browser storage, normalized in cart.py
    items: Any = None

class GuestIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None

class OrderItemIn(BaseModel):
    product_id: int
    quantity: int = Field(le=MAX_LINE_QUANTITY)

class OrderIn(BaseModel):
    items: Optional[List[OrderItemIn]] = None
    guest: Optional[GuestIn] = None
    pickup_slot_id: Optional[int] = None
    special_instructions: Optional[str] = None

class OrderUpdateIn(BaseModel):
    status: Optional[str] = None
    special_instructions: Optional[str] = None

# ---------------------------
# Response helpers
# ---------------------------
def _user_dict(u: User) -> Dict[str, Any]:
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "phone": u.phone,
        "is_admin": u.is_admin,
        "created_at": u.created_at,
    }

def _product_dict(p: Product) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "price_cents": p.price_cents,
        "image_url": p.image_url,
        "category": p.category,
        "stock": p.stock,
        "status": p.status.value,
        "is_deleted": p.is_deleted,
        "created_at": p.created_at,
    }

def _cart_line_dict(ci: CartItem) -> Dict[str, Any]:
    return {
        "id": ci.product.id,
        "name": ci.product.name,
        "price_cents": ci.product.price_cents,
        "image_url": ci.product.image_url,
        "quantity": ci.quantity,
    }

def _order_item_dict(oi: OrderItem) -> Dict[str, Any]:
    return {
        "id": oi.id,
        "product_id": oi.product_id,
        "name": oi.name,
        "quantity": oi.quantity,
        "unit_price_cents": oi.unit_price_cents,
        "line_total_cents": oi.unit_price_cents * oi.quantity,
    }

def _slot_dict(s: PickupSlot) -> Dict[str, Any]:
    return {
        "id": s.id,
        "start_time": s.start_time,
        "end_time": s.end_time,
        "max_orders": s.max_orders,
        "is_active": s.is_active,
        "created_at": s.created_at,
    }

def _order_dict(o: Order) -> Dict[str, Any]:
    user = None
    if o.user is not None:
        user = {"id": o.user.id, "name": o.user.name, "email": o.user.email}
    return {
        "id": o.id,
        "user_id": o.user_id,
        "user": user,
        "guest_name": o.guest_name,
        "guest_email": o.guest_email,
        "status": o.status.value,
        "next_statuses": [s.value for s in ORDER_FLOW[o.status]],
        "special_instructions": o.special_instructions,
        "pickup_slot_id": o.pickup_slot_id,
        "pickup_slot": _slot_dict(o.pickup_slot) if o.pickup_slot is not None else None,
        "items": [_order_item_dict(oi) for oi in o.items],
        "total_cents": o.total_cents,
        "created_at": o.created_at,
    }

def _availability_dict(a: ProductAvailability) -> Dict[str, Any]:
    return {
        "id": a.id,
        "product_id": a.product_id,
        "product": {"id": a.product.id, "name": a.product.name} if a.product is not None else None,
        "week_start": a.week_start,
        "week_end": a.week_end,
        "max_quantity": a.max_quantity,
        "created_at": a.created_at,
    }
