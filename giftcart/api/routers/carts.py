# giftcart/api/routers/carts.py
from fastapi import APIRouter, Depends, Query

from giftcart.api.deps import get_cart_service
from giftcart.api.errors import as_http_error
from giftcart.domain.customization import TemplateCustomization
from giftcart.domain.errors import ServiceError
from giftcart.domain.schemas import AppliedCouponOut, CartOut, CouponIn, ItemIn, QuantityIn
from giftcart.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartOut)
def get_cart(
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    """
    Koszyk z cenami przeliczonymi na nowo (katalog + kupon).
    """
    try:
        return svc.get_cart(user_id)
    except ServiceError as e:
        raise as_http_error(e)


@router.delete("", response_model=CartOut)
def clear_cart(
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.clear_cart(user_id)
    except ServiceError as e:
        raise as_http_error(e)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.add_item(
            user_id=user_id,
            product_id=payload.product_id,
            quantity=payload.quantity,
            custom_template_id=payload.custom_template_id,
        )
    except ServiceError as e:
        raise as_http_error(e)


@router.patch("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int,
    payload: QuantityIn,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.update_quantity(user_id, item_id, payload.quantity)
    except ServiceError as e:
        raise as_http_error(e)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.remove_item(user_id, item_id)
    except ServiceError as e:
        raise as_http_error(e)


@router.put("/items/{item_id}/customization", response_model=CartOut)
def link_customization(
    item_id: int,
    payload: TemplateCustomization,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    """
    Podpina wynik edytora (obszary + obrazy) do pozycji koszyka.
    """
    try:
        return svc.link_customization(user_id, item_id, payload)
    except ServiceError as e:
        raise as_http_error(e)


@router.post("/coupon", response_model=CartOut)
def apply_coupon(
    payload: CouponIn,
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.apply_coupon(user_id, payload.code)
    except ServiceError as e:
        raise as_http_error(e)


@router.get("/coupon", response_model=AppliedCouponOut)
def get_coupon(
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.get_applied_coupon(user_id)
    except ServiceError as e:
        raise as_http_error(e)


@router.delete("/coupon", response_model=CartOut)
def remove_coupon(
    user_id: int = Query(..., gt=0),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.remove_coupon(user_id)
    except ServiceError as e:
        raise as_http_error(e)
