# bakery/catalog.py
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from .core import AvailabilityIn, ProductIn, _availability_dict, _product_dict
from .models import Product, ProductAvailability, ProductStatus, as_naive_utc

logger = logging.getLogger("bakery.catalog")


def _parse_status(raw: Optional[str]) -> Optional[ProductStatus]:
    if raw is None:
        return None
    try:
        return ProductStatus(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid product status")


def _check_price_and_stock(price_cents: Optional[int], stock: Optional[int]) -> None:
    if price_cents is not None and price_cents < 0:
        raise HTTPException(status_code=400, detail="Price must be a non-negative number")
    if stock is not None and stock < 0:
        raise HTTPException(status_code=400, detail="Stock must be a non-negative integer")


def _live_product_or_404(db: Session, product_id: int, detail: str) -> Product:
    p = db.get(Product, product_id)
    if p is None or p.is_deleted:
        raise HTTPException(status_code=404, detail=detail)
    return p


# ---------------------------
# Products
# ---------------------------
def list_products_logic(db: Session) -> List[Dict[str, Any]]:
    q = (
        select(Product)
        .where(Product.is_deleted.is_(False), Product.status == ProductStatus.ACTIVE)
        .order_by(Product.created_at.desc(), Product.id.desc())
    )
    return [_product_dict(p) for p in db.scalars(q)]


def list_admin_products_logic(db: Session, archived: bool = False) -> List[Dict[str, Any]]:
    statuses = [ProductStatus.ARCHIVED] if archived else [ProductStatus.ACTIVE, ProductStatus.INACTIVE]
    q = (
        select(Product)
        .where(Product.is_deleted.is_(False), Product.status.in_(statuses))
        .order_by(Product.created_at.desc(), Product.id.desc())
    )
    return [_product_dict(p) for p in db.scalars(q)]


def get_product_logic(db: Session, product_id: int) -> Dict[str, Any]:
    return _product_dict(_live_product_or_404(db, product_id, "Product not found or has been deleted"))


def create_product_logic(db: Session, payload: ProductIn) -> Dict[str, Any]:
    if not payload.name or payload.price_cents is None or not payload.category or payload.stock is None:
        raise HTTPException(status_code=400, detail="Name, price, category, and stock are required")
    _check_price_and_stock(payload.price_cents, payload.stock)
    status = _parse_status(payload.status) or ProductStatus.ACTIVE

    p = Product(
        name=payload.name,
        description=payload.description,
        price_cents=payload.price_cents,
        image_url=payload.image_url,
        category=payload.category,
        stock=payload.stock,
        status=status,
    )
    db.add(p)
    db.commit()
    logger.info("created product %s (%s)", p.id, p.name)
    return _product_dict(p)


def update_product_logic(db: Session, product_id: int, payload: ProductIn) -> Dict[str, Any]:
    _check_price_and_stock(payload.price_cents, payload.stock)
    status = _parse_status(payload.status)
    p = _live_product_or_404(db, product_id, "Product not found or has been deleted")

    for field in ("name", "description", "price_cents", "image_url", "category", "stock"):
        value = getattr(payload, field)
        if value is not None:
            setattr(p, field, value)
    if status is not None:
        p.status = status
    db.commit()
    return _product_dict(p)


def delete_product_logic(db: Session, product_id: int) -> None:
    p = _live_product_or_404(db, product_id, "Product not found or already deleted")
    # soft delete keeps order history pointing at a real row
    p.is_deleted = True
    p.status = ProductStatus.ARCHIVED
    db.commit()
    logger.info("soft-deleted product %s", product_id)


# ---------------------------
# Product availabilities
# ---------------------------
def _availability_or_404(db: Session, availability_id: int) -> ProductAvailability:
    a = db.get(ProductAvailability, availability_id)
    if a is None:
        raise HTTPException(status_code=404, detail="Product availability not found")
    return a


def _check_max_quantity(max_quantity: Optional[int]) -> None:
    if max_quantity is not None and max_quantity < 0:
        raise HTTPException(status_code=400, detail="max_quantity must be a non-negative number")


def _require_product_for_availability(db: Session, product_id: int) -> None:
    p = db.get(Product, product_id)
    if p is None or p.is_deleted:
        raise HTTPException(
            status_code=404,
            detail=f"Product with ID {product_id} not found or has been deleted.",
        )


def create_availability_logic(db: Session, payload: AvailabilityIn) -> Dict[str, Any]:
    if (payload.product_id is None or payload.week_start is None
            or payload.week_end is None or payload.max_quantity is None):
        raise HTTPException(
            status_code=400,
            detail="product_id, week_start, week_end, and max_quantity are required",
        )
    _check_max_quantity(payload.max_quantity)
    week_start = as_naive_utc(payload.week_start)
    week_end = as_naive_utc(payload.week_end)
    if week_start >= week_end:
        raise HTTPException(status_code=400, detail="week_start must be before week_end")
    _require_product_for_availability(db, payload.product_id)

    a = ProductAvailability(
        product_id=payload.product_id,
        week_start=week_start,
        week_end=week_end,
        max_quantity=payload.max_quantity,
    )
    db.add(a)
    db.commit()
    return _availability_dict(a)


def list_availabilities_logic(
    db: Session,
    product_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    q = select(ProductAvailability).options(selectinload(ProductAvailability.product))
    if product_id is not None:
        q = q.where(ProductAvailability.product_id == product_id)
    if start_date is not None:
        q = q.where(ProductAvailability.week_start >= as_naive_utc(start_date))
    if end_date is not None:
        q = q.where(ProductAvailability.week_end <= as_naive_utc(end_date))
    q = q.order_by(ProductAvailability.week_start.asc(), ProductAvailability.id.asc())
    return [_availability_dict(a) for a in db.scalars(q)]


def get_availability_logic(db: Session, availability_id: int) -> Dict[str, Any]:
    return _availability_dict(_availability_or_404(db, availability_id))


def update_availability_logic(db: Session, availability_id: int, payload: AvailabilityIn) -> Dict[str, Any]:
    _check_max_quantity(payload.max_quantity)
    a = _availability_or_404(db, availability_id)

    week_start = as_naive_utc(payload.week_start) if payload.week_start is not None else a.week_start
    week_end = as_naive_utc(payload.week_end) if payload.week_end is not None else a.week_end
    if week_start >= week_end:
        raise HTTPException(status_code=400, detail="week_start must be before week_end")
    if payload.product_id is not None:
        _require_product_for_availability(db, payload.product_id)
        a.product_id = payload.product_id

    a.week_start = week_start
    a.week_end = week_end
    if payload.max_quantity is not None:
        a.max_quantity = payload.max_quantity
    db.commit()
    db.refresh(a)
    return _availability_dict(a)


def delete_availability_logic(db: Session, availability_id: int) -> None:
    a = _availability_or_404(db, availability_id)
    db.delete(a)
    db.commit()
