# routers/checkout.py
"""
Storefront routes: landing pages, checkout form and invoice redirect.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query
from fastapi.responses import HTMLResponse, RedirectResponse

from dependencies import get_lifecycle, get_store
from models import OrderStatus
from services import (
     DuplicateKey,
     NotFound,
     OrderLifecycleManager,
     OrderStore,
     UpstreamUnavailable,
     ValidationError,
)
from utils import pages

logger = logging.getLogger(__name__)

router = APIRouter(tags=["checkout"])

DEFAULT_PRODUCT = "WOLF GAMING Credits"


@router.get("/", response_class=HTMLResponse)
def home():
     return pages.home_page()


@router.get("/terms", response_class=HTMLResponse)
def terms():
     return pages.terms_page()


@router.get("/success", response_class=HTMLResponse)
def success(order_id: Optional[str] = Query(None)):
     return pages.success_page(order_id)


@router.get("/cancel", response_class=HTMLResponse)
def cancel():
     return pages.cancel_page()


@router.get("/checkout/{amount}", response_class=HTMLResponse)
def checkout(
     amount: str,
     p: str = Query(DEFAULT_PRODUCT, description="Product name"),
     curr: str = Query("ILS", description="ILS or USD"),
     lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
):
     """
     Checkout form for a fixed amount. Amounts below the currency minimum
     (100 ILS / 31 USD) are rejected here, before anything is created.
     """
     currency = curr.strip().upper()
     if currency not in ("ILS", "USD"):
          return HTMLResponse(pages.error_page(f"Unsupported currency: {curr}"), status_code=400)
     try:
          value = Decimal(amount)
     except InvalidOperation:
          return HTMLResponse(pages.error_page(f"Invalid amount: {amount}"), status_code=400)
     minimum = lifecycle.minimum_for(currency)
     if not value.is_finite() or value < minimum:
          return HTMLResponse(pages.error_page(f"Minimum order is {minimum} {currency}"), status_code=400)
     return pages.checkout_page(value, currency, p or DEFAULT_PRODUCT)


@router.post("/process-payment")
def process_payment(
     name: str = Form(""),
     email: str = Form(""),
     productName: str = Form(DEFAULT_PRODUCT),
     baseAmount: Optional[str] = Form(None),
     totalAmount: Optional[str] = Form(None),
     currency: str = Form("ILS"),
     lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
):
     """
     Create the invoice and order, then redirect the buyer to the invoice.

     A posted totalAmount is charged as-is and the order starts in
     "fulfilling"; a baseAmount-only post starts in "pending".
     """
     if totalAmount:
          amount, status = totalAmount, OrderStatus.FULFILLING
     else:
          amount, status = baseAmount, OrderStatus.PENDING

     try:
          result = lifecycle.create_order(
               amount=amount,
               customer_name=name,
               customer_email=email,
               product_name=productName,
               currency=currency,
               status=status,
          )
     except ValidationError as e:
          return HTMLResponse(pages.error_page(str(e)), status_code=400)
     except (UpstreamUnavailable, DuplicateKey) as e:
          logger.error("Checkout failed: %s", e)
          return HTMLResponse(pages.error_page("Request Failed"), status_code=500)

     return RedirectResponse(result.invoice_url, status_code=303)


@router.get("/receipt", response_class=HTMLResponse)
def receipt(
     order_id: str = Query(..., description="Order to show"),
     store: OrderStore = Depends(get_store),
):
     try:
          order = store.get(order_id)
     except NotFound:
          return HTMLResponse(pages.error_page("Order not found"), status_code=404)
     return pages.receipt_page(order)
