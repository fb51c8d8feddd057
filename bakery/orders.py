# bakery/orders.py
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from .cart import _find_cart
from .core import OrderIn, OrderUpdateIn, _order_dict
from .models import (
    STOCK_RELEASED, Order, OrderItem, OrderStatus, PickupSlot, Product, User, as_naive_utc,
)

logger = logging.getLogger("bakery.orders")


def _parse_order_status(raw: str) -> OrderStatus:
    try:
        return OrderStatus(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid order status")


def _order_or_404(db: Session, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _revert_stock(db: Session, order: Order) -> None:
    # caller commits; increments land together with the status change or not at all
    for item in order.items:
        db.execute(
            update(Product)
            .where(Product.id == item.product_id)
            .values(stock=Product.stock + item.quantity)
            .execution_options(synchronize_session="evaluate")
        )
    logger.info("reverted stock for order %s (%d lines)", order.id, len(order.items))


# ---------------------------
# Placement
# ---------------------------
def _requested_lines(payload: OrderIn, cart_items) -> List[Tuple[int, int]]:
    if payload.items:
        pairs = [(it.product_id, it.quantity) for it in payload.items]
    else:
        pairs = [(ci.product_id, ci.quantity) for ci in cart_items]
    # fold duplicate product ids into one line
    merged: Dict[int, int] = {}
    for pid, qty in pairs:
        if qty <= 0:
            raise HTTPException(status_code=400, detail="quantity must be > 0")
        merged[pid] = merged.get(pid, 0) + qty
    return list(merged.items())


def _check_pickup_slot(db: Session, slot_id: int) -> PickupSlot:
    slot = db.get(PickupSlot, slot_id)
    if slot is None:
        raise HTTPException(status_code=404, detail="Pickup slot not found")
    if not slot.is_active:
        raise HTTPException(status_code=400, detail="Pickup slot is not active")
    booked = db.scalar(
        select(func.count(Order.id)).where(
            Order.pickup_slot_id == slot_id, Order.status != OrderStatus.CANCELLED,
        )
    )
    if booked >= slot.max_orders:
        raise HTTPException(status_code=409, detail="pickup_slot_full")
    return slot


def place_order_logic(db: Session, user: Optional[User], payload: OrderIn) -> Dict[str, Any]:
    cart = None
    if not payload.items and user is not None:
        cart = _find_cart(db, user)
    lines = _requested_lines(payload, cart.items if cart is not None else [])
    if not lines:
        raise HTTPException(status_code=400, detail="Cart is empty.")

    guest = payload.guest
    if user is None and (guest is None or not guest.name or not guest.email):
        raise HTTPException(status_code=400, detail="Name and email are required for guest checkout.")

    try:
        slot = _check_pickup_slot(db, payload.pickup_slot_id) if payload.pickup_slot_id is not None else None

        order_items = []
        total = 0
        for pid, qty in lines:
            prod = db.get(Product, pid)
            if prod is None or not prod.is_active:
                raise HTTPException(status_code=404, detail=f"product_not_found:{pid}")
            res = db.execute(
                update(Product)
                .where(Product.id == pid, Product.stock >= qty)
                .values(stock=Product.stock - qty)
                .execution_options(synchronize_session="evaluate")
            )
            if res.rowcount == 0:
                raise HTTPException(status_code=409, detail=f"insufficient_stock:{pid}")
            total += prod.price_cents * qty
            order_items.append(OrderItem(
                product_id=pid,
                name=prod.name,
                quantity=qty,
                unit_price_cents=prod.price_cents,
            ))

        order = Order(
            user_id=user.id if user is not None else None,
            guest_name=None if user is not None else guest.name,
            guest_email=None if user is not None else guest.email,
            pickup_slot=slot,
            special_instructions=payload.special_instructions,
            total_cents=total,
            status=OrderStatus.PENDING,
            items=order_items,
        )
        db.add(order)
        if cart is not None:
            cart.items.clear()
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("order %s placed (%s), total_cents=%d",
                order.id, f"user {user.id}" if user is not None else "guest", total)
    return _order_dict(order)


# ---------------------------
# Reads
# ---------------------------
def list_orders_logic(
    db: Session,
    user: User,
    user_id: Optional[int] = None,
    status: Optional[str] = None,
    pickup_slot_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    q = select(Order).options(
        selectinload(Order.items), selectinload(Order.user), selectinload(Order.pickup_slot),
    )
    if user.is_admin:
        if user_id is not None:
            q = q.where(Order.user_id == user_id)
        if status:
            q = q.where(Order.status == _parse_order_status(status))
        if pickup_slot_id is not None:
            q = q.where(Order.pickup_slot_id == pickup_slot_id)
        if date_from is not None:
            q = q.where(Order.created_at >= as_naive_utc(date_from))
        if date_to is not None:
            q = q.where(Order.created_at <= as_naive_utc(date_to))
    else:
        # filters are an admin feature; everyone else only sees their own orders
        q = q.where(Order.user_id == user.id)
    q = q.order_by(Order.created_at.desc(), Order.id.desc())
    return [_order_dict(o) for o in db.scalars(q)]


def get_order_logic(db: Session, user: User, order_id: int) -> Dict[str, Any]:
    order = _order_or_404(db, order_id)
    if not user.is_admin and order.user_id != user.id:
        raise HTTPException(status_code=403, detail="Forbidden: You can only view your own orders")
    return _order_dict(order)


# ---------------------------
# Status transitions
# ---------------------------
def update_order_logic(db: Session, user: User, order_id: int, payload: OrderUpdateIn) -> Dict[str, Any]:
    """Apply a status change and/or special-instructions edit.

    Admins may set any valid status, except that COMPLETED and CANCELLED
    orders never change status again. Owners may only move PENDING -> CANCELLED
    and edit instructions while the order is PENDING. Cancelling puts each
    line's quantity back on the product's stock, committed together with the
    status change.
    """
    if payload.status is None and payload.special_instructions is None:
        raise HTTPException(
            status_code=400,
            detail="No update data provided (status or special_instructions).",
        )
    order = _order_or_404(db, order_id)

    new_status: Optional[OrderStatus] = None
    new_instructions: Optional[str] = None

    if user.is_admin:
        if payload.status is not None:
            new_status = _parse_order_status(payload.status)
        new_instructions = payload.special_instructions
    else:
        if order.user_id != user.id:
            raise HTTPException(status_code=403, detail="Forbidden: You cannot update this order.")
        if payload.special_instructions is not None and order.status == OrderStatus.PENDING:
            new_instructions = payload.special_instructions
        if payload.status == OrderStatus.CANCELLED.value:
            if order.status != OrderStatus.PENDING:
                raise HTTPException(
                    status_code=400,
                    detail="Order can only be cancelled if it is currently PENDING.",
                )
            new_status = OrderStatus.CANCELLED
        elif payload.status is not None and payload.status != order.status.value:
            raise HTTPException(status_code=403, detail="Forbidden: You can only cancel a PENDING order.")

    if new_status is None and new_instructions is None:
        raise HTTPException(status_code=400, detail="No valid fields to update or action not permitted.")

    previous = order.status
    if new_status is not None and new_status != previous and previous in STOCK_RELEASED:
        # COMPLETED and CANCELLED are terminal
        raise HTTPException(
            status_code=400,
            detail=f"Order is {previous.value} and its status can no longer change.",
        )
    try:
        if new_status is not None and new_status != previous:
            if new_status == OrderStatus.CANCELLED and previous not in STOCK_RELEASED:
                _revert_stock(db, order)
            order.status = new_status
        if new_instructions is not None:
            order.special_instructions = new_instructions
        db.commit()
    except Exception:
        db.rollback()
        raise

    if new_status is not None and new_status != previous:
        logger.info("order %s: %s -> %s by user %s", order.id, previous.value, new_status.value, user.id)
    return _order_dict(order)


def delete_order_logic(db: Session, order_id: int) -> None:
    order = _order_or_404(db, order_id)
    try:
        if order.status not in STOCK_RELEASED:
            _revert_stock(db, order)
        db.delete(order)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("deleted order %s", order_id)
