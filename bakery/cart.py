# bakery/cart.py
import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from .core import MAX_LINE_QUANTITY, AddToCartIn, UpdateCartIn, _cart_line_dict
from .models import Cart, CartItem, Product, User

logger = logging.getLogger("bakery.cart")

# largest value SQLite stores in an INTEGER column
MAX_ROW_ID = 2 ** 63 - 1


def _find_cart(db: Session, user: User) -> Optional[Cart]:
    return db.scalar(select(Cart).where(Cart.user_id == user.id))


def _get_or_create_cart(db: Session, user: User) -> Cart:
    cart = _find_cart(db, user)
    if cart is None:
        cart = Cart(user_id=user.id)
        db.add(cart)
        db.flush()
    return cart


def _line_for(cart: Cart, product_id: int) -> Optional[CartItem]:
    for ci in cart.items:
        if ci.product_id == product_id:
            return ci
    return None


def _active_lines(cart: Optional[Cart]) -> List[Dict[str, Any]]:
    if cart is None:
        return []
    return [_cart_line_dict(ci) for ci in cart.items if ci.product.is_active]


def _is_finite_number(value: Any) -> bool:
    # bool is an int subclass but never a valid id or quantity
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


def normalize_guest_items(raw: List[Any]) -> List[Tuple[int, int]]:
    """Turn a browser-stored guest cart into (product_id, quantity) pairs.

    Malformed entries are dropped, as are ids outside the INTEGER range and
    quantities above MAX_LINE_QUANTITY. Quantities are floored and clamped
    to a minimum of 1. Both ``product_id`` and ``id`` are accepted as the key.
    """
    out: List[Tuple[int, int]] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        pid = entry.get("product_id", entry.get("id"))
        qty = entry.get("quantity")
        if not _is_finite_number(pid) or not _is_finite_number(qty):
            continue
        if not 0 < pid <= MAX_ROW_ID or float(pid) != int(pid):
            continue
        if qty > MAX_LINE_QUANTITY:
            continue
        out.append((int(pid), max(1, math.floor(qty))))
    return out


# ---------------------------
# Cart endpoints
# ---------------------------
def view_cart_logic(db: Session, user: User) -> Dict[str, Any]:
    return {"items": _active_lines(_find_cart(db, user))}


def cart_add_logic(db: Session, user: User, payload: AddToCartIn) -> Dict[str, Any]:
    if payload.product_id is None or payload.quantity < 1:
        raise HTTPException(status_code=400, detail="Valid product_id and quantity are required")
    product = db.get(Product, payload.product_id)
    if product is None or not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found or inactive")

    cart = _get_or_create_cart(db, user)
    line = _line_for(cart, product.id)
    if line is not None:
        line.quantity += payload.quantity
    else:
        cart.items.append(CartItem(product=product, quantity=payload.quantity))
    db.commit()
    return {"message": "Item added to cart successfully", "items": _active_lines(cart)}


def _existing_line_or_404(db: Session, user: User, product_id: int) -> Tuple[Cart, CartItem]:
    cart = _find_cart(db, user)
    if cart is None:
        raise HTTPException(status_code=404, detail="Cart not found")
    line = _line_for(cart, product_id)
    if line is None:
        raise HTTPException(status_code=404, detail="Item not found in cart")
    return cart, line


def cart_update_logic(db: Session, user: User, payload: UpdateCartIn) -> Dict[str, Any]:
    if payload.product_id is None or payload.quantity is None or payload.quantity < 1:
        raise HTTPException(status_code=400, detail="Valid product_id and quantity are required")
    cart, line = _existing_line_or_404(db, user, payload.product_id)
    line.quantity = payload.quantity
    db.commit()
    return {"message": "Cart item updated successfully", "items": _active_lines(cart)}


def cart_remove_logic(db: Session, user: User, product_id: int) -> Dict[str, Any]:
    cart, line = _existing_line_or_404(db, user, product_id)
    cart.items.remove(line)
    db.commit()
    return {"message": "Item removed from cart successfully", "items": _active_lines(cart)}


def cart_clear_logic(db: Session, user: User) -> Dict[str, Any]:
    cart = _find_cart(db, user)
    if cart is None:
        return {"message": "Cart already empty"}
    cart.items.clear()
    db.commit()
    return {"message": "Cart cleared successfully"}


# ---------------------------
# Guest cart merge (on login)
# ---------------------------
def cart_sync_logic(db: Session, user: User, raw_items: Any) -> Dict[str, Any]:
    """Merge a guest cart into the user's server-side cart.

    Quantities add onto existing lines instead of replacing them, and lines
    for products that are missing, deleted or not ACTIVE are skipped without
    error. There is no dedup token: posting the same guest cart twice counts
    it twice.
    """
    if not isinstance(raw_items, list):
        raise HTTPException(status_code=400, detail="Items must be an array")

    normalized = normalize_guest_items(raw_items)
    if not normalized:
        return {"message": "Nothing to sync", "items": []}

    cart = _get_or_create_cart(db, user)
    existing = {ci.product_id: ci for ci in cart.items}
    merged = skipped = 0

    for product_id, add_qty in normalized:
        product = db.get(Product, product_id)
        if product is None or not product.is_active:
            skipped += 1
            continue
        line = existing.get(product_id)
        if line is not None:
            line.quantity += add_qty
        else:
            line = CartItem(product=product, quantity=add_qty)
            cart.items.append(line)
            existing[product_id] = line
        merged += 1

    db.commit()
    logger.info("merged guest cart for user %s: %d lines merged, %d skipped", user.id, merged, skipped)
    return {"message": "Cart merged successfully", "items": _active_lines(cart)}
