# bakery/slots.py
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .core import PickupSlotIn, _slot_dict
from .models import Order, PickupSlot, User, as_naive_utc, utcnow


def _slot_or_404(db: Session, slot_id: int) -> PickupSlot:
    s = db.get(PickupSlot, slot_id)
    if s is None:
        raise HTTPException(status_code=404, detail="Pickup slot not found")
    return s


def _check_max_orders(max_orders: Optional[int]) -> None:
    if max_orders is not None and max_orders < 0:
        raise HTTPException(status_code=400, detail="max_orders must be a non-negative integer")


def create_slot_logic(db: Session, payload: PickupSlotIn) -> Dict[str, Any]:
    if payload.start_time is None or payload.end_time is None or payload.max_orders is None:
        raise HTTPException(status_code=400, detail="start_time, end_time, and max_orders are required")
    start, end = as_naive_utc(payload.start_time), as_naive_utc(payload.end_time)
    if start >= end:
        raise HTTPException(status_code=400, detail="start_time must be before end_time")
    _check_max_orders(payload.max_orders)

    s = PickupSlot(
        start_time=start,
        end_time=end,
        max_orders=payload.max_orders,
        is_active=True if payload.is_active is None else payload.is_active,
    )
    db.add(s)
    db.commit()
    return _slot_dict(s)


def list_slots_logic(
    db: Session,
    user: User,
    on_date: Optional[date] = None,
    is_active: Optional[bool] = None,
) -> List[Dict[str, Any]]:
    q = select(PickupSlot)
    if user.is_admin:
        if is_active is not None:
            q = q.where(PickupSlot.is_active.is_(is_active))
        if on_date is not None:
            # any slot overlapping that calendar day
            day_start = datetime.combine(on_date, time.min)
            day_end = day_start + timedelta(days=1)
            q = q.where(PickupSlot.start_time < day_end, PickupSlot.end_time > day_start)
    else:
        q = q.where(PickupSlot.is_active.is_(True), PickupSlot.start_time > utcnow())
    q = q.order_by(PickupSlot.start_time.asc(), PickupSlot.id.asc())
    return [_slot_dict(s) for s in db.scalars(q)]


def get_slot_logic(db: Session, slot_id: int) -> Dict[str, Any]:
    return _slot_dict(_slot_or_404(db, slot_id))


def update_slot_logic(db: Session, slot_id: int, payload: PickupSlotIn) -> Dict[str, Any]:
    _check_max_orders(payload.max_orders)
    s = _slot_or_404(db, slot_id)

    start = as_naive_utc(payload.start_time) if payload.start_time is not None else s.start_time
    end = as_naive_utc(payload.end_time) if payload.end_time is not None else s.end_time
    if start >= end:
        raise HTTPException(
            status_code=400,
            detail="Update would result in start_time being after or same as end_time",
        )

    s.start_time, s.end_time = start, end
    if payload.max_orders is not None:
        s.max_orders = payload.max_orders
    if payload.is_active is not None:
        s.is_active = payload.is_active
    db.commit()
    return _slot_dict(s)


def delete_slot_logic(db: Session, slot_id: int) -> None:
    s = _slot_or_404(db, slot_id)
    in_use = db.scalar(select(func.count(Order.id)).where(Order.pickup_slot_id == slot_id))
    if in_use:
        raise HTTPException(
            status_code=409,
            detail="Cannot delete pickup slot. It is currently associated with existing orders.",
        )
    db.delete(s)
    db.commit()
