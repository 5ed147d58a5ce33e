# routers/admin.py
"""
Admin dashboard API.

Every route except login requires the admin token (see dependencies.verify_admin).
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import HTMLResponse, JSONResponse

from dependencies import check_admin_password, get_lifecycle, get_store, issue_admin_token, verify_admin
from models import Order
from schemas.order import (
     LoginRequest,
     LoginResponse,
     MarkDeliveredRequest,
     MarkDeliveredResponse,
     OrderListResponse,
     OrderResponse,
     StatusUpdateRequest,
)
from services import (
     CompletionMethod,
     InvalidTransition,
     NotFound,
     NotificationFailure,
     OrderLifecycleManager,
     OrderStore,
     ValidationError,
)
from utils import pages
from utils.storage import save_proof_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _get_order_or_404(store: OrderStore, order_id: str) -> Order:
     try:
          return store.get(order_id)
     except NotFound:
          raise HTTPException(
               status_code=status.HTTP_404_NOT_FOUND,
               detail=f"Order {order_id} not found"
          )


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest):
     if not check_admin_password(body.password):
          logger.warning("Failed admin login")
          return LoginResponse(success=False)
     return LoginResponse(success=True, token=issue_admin_token())


@router.get("/orders", response_model=OrderListResponse)
def list_orders(
     store: OrderStore = Depends(get_store),
     token: dict = Depends(verify_admin),
):
     """All orders, newest first."""
     orders = store.list()
     return OrderListResponse(
          orders=[OrderResponse.model_validate(o) for o in orders],
          total=len(orders),
     )


@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(
     order_id: str,
     store: OrderStore = Depends(get_store),
     token: dict = Depends(verify_admin),
):
     return OrderResponse.model_validate(_get_order_or_404(store, order_id))


@router.post("/update-status", response_model=OrderResponse)
def update_status(
     body: StatusUpdateRequest,
     lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
     token: dict = Depends(verify_admin),
):
     """
     Override an open order's status. Appends "Status changed to X".
     Completion goes through mark-delivered instead.
     """
     try:
          order = lifecycle.change_status(body.orderId, body.status.value)
     except NotFound as e:
          raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
     except (InvalidTransition, ValidationError) as e:
          raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
     return OrderResponse.model_validate(order)


@router.post("/update-delivery", response_model=OrderResponse)
def update_delivery(
     orderId: str = Form(...),
     txid: Optional[str] = Form(None),
     image: Optional[UploadFile] = File(None),
     lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
     token: dict = Depends(verify_admin),
):
     """Attach a TXID and/or a proof-of-delivery image."""
     _get_order_or_404(lifecycle.store, orderId)

     proof_url = None
     if image is not None and image.filename:
          try:
               proof_url = save_proof_image(image, orderId)
          except ValueError as e:
               raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

     try:
          order = lifecycle.attach_delivery(orderId, txid=txid, proof_image=proof_url)
     except ValidationError as e:
          raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
     except NotFound as e:
          raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
     return OrderResponse.model_validate(order)


@router.post("/mark-delivered", response_model=MarkDeliveredResponse)
def mark_delivered(
     body: MarkDeliveredRequest,
     lifecycle: OrderLifecycleManager = Depends(get_lifecycle),
     token: dict = Depends(verify_admin),
):
     """
     Complete the order manually. Calling it again, or after the timer has
     already completed the order, changes nothing.
     """
     _get_order_or_404(lifecycle.store, body.orderId)
     try:
          order = lifecycle.complete(body.orderId, CompletionMethod.MANUAL)
     except NotificationFailure as e:
          logger.error("Manual delivery of %s failed: %s", body.orderId, e)
          return JSONResponse(
               status_code=status.HTTP_502_BAD_GATEWAY,
               content={"success": False, "completed": False, "message": "Confirmation email could not be sent"},
          )

     if order is None:
          current = _get_order_or_404(lifecycle.store, body.orderId)
          return MarkDeliveredResponse(
               success=True,
               completed=False,
               order=OrderResponse.model_validate(current),
               message=f"Order is already {current.status}",
          )
     return MarkDeliveredResponse(success=True, completed=True, order=OrderResponse.model_validate(order))


@router.get("/proof/{order_id}", response_class=HTMLResponse)
def proof_certificate(
     order_id: str,
     store: OrderStore = Depends(get_store),
     token: dict = Depends(verify_admin),
):
     return pages.proof_page(_get_order_or_404(store, order_id))


@router.get("/pod/{order_id}", response_class=HTMLResponse)
def delivery_certificate(
     order_id: str,
     store: OrderStore = Depends(get_store),
     token: dict = Depends(verify_admin),
):
     return pages.pod_page(_get_order_or_404(store, order_id))
