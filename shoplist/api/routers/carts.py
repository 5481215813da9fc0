#shoplist/api/routers/carts.py
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from shoplist.api.auth import get_current_user_id
from shoplist.data.database import get_db
from shoplist.domain.exceptions import CartLimitError, InvalidOperationError
from shoplist.domain.schemas import (
    CartsOverview,
    CartUpdate,
    NewCart,
    ShoppingCart,
    StartCartIn,
    SweepIn,
)
from shoplist.services.cart_service import CartService

router = APIRouter(prefix="/carts", tags=["carts"])


def get_service(db: Session):
    return CartService(db=db)


def _limit_exceeded(e: CartLimitError) -> HTTPException:
    return HTTPException(status_code=409, detail={"code": e.code, "message": e.message})


@router.get("/", response_model=List[ShoppingCart])
def list_carts(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return get_service(db).list_carts(user_id)


@router.get("/active", response_model=List[ShoppingCart])
def list_active_carts(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return get_service(db).list_active(user_id)


@router.get("/today", response_model=Optional[ShoppingCart])
def get_todays_cart(
    tz: Optional[str] = Query(None, description="IANA timezone of the caller, e.g. Asia/Kolkata"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        zone = ZoneInfo(tz) if tz else None
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {tz}")
    return get_service(db).get_todays_cart(user_id, zone)


@router.get("/overview", response_model=CartsOverview)
def get_overview(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return get_service(db).overview(user_id)


@router.post("/", response_model=ShoppingCart, status_code=201)
def create_cart(
    payload: NewCart,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        return get_service(db).create_cart(user_id, payload)
    except CartLimitError as e:
        raise _limit_exceeded(e)


@router.post("/new", response_model=ShoppingCart, status_code=201)
def start_new_cart(
    payload: StartCartIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Archives the current cart and opens an empty one for today."""
    try:
        return get_service(db).start_new_cart(user_id, payload.currency, payload.current_cart_id)
    except CartLimitError as e:
        raise _limit_exceeded(e)


@router.post("/sweep", status_code=204)
def sweep_active_carts(
    payload: SweepIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    get_service(db).sweep(user_id, payload.keep_cart_id)
    return Response(status_code=204)


@router.get("/{cart_id}", response_model=ShoppingCart)
def get_cart(
    cart_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    cart = get_service(db).get_cart(user_id, cart_id)
    if not cart:
        raise HTTPException(status_code=404, detail="Cart not found")
    return cart


@router.patch("/{cart_id}", response_model=ShoppingCart)
def update_cart(
    cart_id: str,
    payload: CartUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    cart = get_service(db).update_cart(user_id, cart_id, payload)
    if not cart:
        raise HTTPException(status_code=404, detail="Cart not found")
    return cart


@router.post("/{cart_id}/archive", response_model=ShoppingCart)
def archive_cart(
    cart_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    cart = get_service(db).archive_cart(user_id, cart_id)
    if not cart:
        raise HTTPException(status_code=404, detail="Cart not found")
    return cart


@router.delete("/{cart_id}", status_code=204)
def delete_cart(
    cart_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        get_service(db).delete_cart(user_id, cart_id)
    except InvalidOperationError as e:
        raise HTTPException(status_code=409, detail=e.message)
    return Response(status_code=204)
