"""
Booking ledger routes - check-in, charges, discounts, late checkout, checkout
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Header, Query

from innkeeper.models.ontology import BookingStatus, Employee
from innkeeper.models.schemas import (
    CheckInRequest, GuestRegistration, BookingResponse, BookingDetailResponse,
    ActiveBookingResponse, AddChargesRequest, ChargesAddedResponse, DiscountRequest,
    DiscountAppliedResponse, LateCheckoutPreviewResponse, CheckoutRequest, CheckoutResponse,
    ChargeResponse, PaymentResponse, DiscountResponse, RefundResponse
)
from innkeeper.routers.deps import get_ledger_service
from innkeeper.security.auth import get_current_user
from innkeeper.services.ledger_service import LedgerService

router = APIRouter(tags=["bookings"])


@router.post("/bookings", response_model=BookingResponse, status_code=201)
def check_in(
    data: CheckInRequest,
    service: LedgerService = Depends(get_ledger_service),
    current_user: Employee = Depends(get_current_user)
):
    """Check a registered customer into an available room"""
    return service.check_in(data, current_user.id)


@router.post("/guests/register", response_model=BookingResponse, status_code=201)
def register_guest(
    data: GuestRegistration,
    service: LedgerService = Depends(get_ledger_service),
    current_user: Employee = Depends(get_current_user)
):
    """Walk-in: customer record and check-in in one step"""
    return service.register_guest(data, current_user.id)


@router.get("/bookings/active", response_model=List[ActiveBookingResponse])
def list_active_bookings(
    service: LedgerService = Depends(get_ledger_service),
    current_user: Employee = Depends(get_current_user)
):
    """Checked-in guests with their live late-checkout charge"""
    return service.list_active_bookings()


@router.get("/bookings/search", response_model=List[BookingResponse])
def search_bookings(
    room_number: Optional[str] = Query(None),
    document_number: Optional[str] = Query(None),
    status: Optional[BookingStatus] = Query(None),
    service: LedgerService = Depends(get_ledger_service),
    current_user: Employee = Depends(get_current_user)
):
    return service.search_bookings(room_number, document_number, status)


@router.get("/bookings/{booking_id}", response_model=BookingDetailResponse)
def get_booking(
    booking_id: int,
    service: LedgerService = Depends(get_ledger_service),
    current_user: Employee = Depends(get_current_user)
):
    detail = service.get_booking_detail(booking_id)
    return BookingDetailResponse(
        booking=BookingResponse.model_validate(detail["booking"]),
        room_number=detail["room_number"],
        customer_name=detail["customer_name"],
        charges=[ChargeResponse.model_validate(c) for c in detail["charges"]],
        payments=[PaymentResponse.model_validate(p) for p in detail["payments"]],
        discounts=[DiscountResponse.model_validate(d) for d in detail["discounts"]],
        refunds=[RefundResponse.model_validate(r) for r in detail["refunds"]],
    )


@router.post("/bookings/{booking_id}/charges", response_model=ChargesAddedResponse, status_code=201)
def add_charges(
    booking_id: int,
    data: AddChargesRequest,
    idempotency_key: Optional[str] = Header(None),
    service: LedgerService = Depends(get_ledger_service),
    current_user: Employee = Depends(get_current_user)
):
    """Add products/services to an active booking"""
    return service.add_charges(booking_id, data.items, current_user.id, idempotency_key)


@router.post("/bookings/{booking_id}/discount", response_model=DiscountAppliedResponse)
def apply_discount(
    booking_id: int,
    data: DiscountRequest,
    service: LedgerService = Depends(get_ledger_service),
    current_user: Employee = Depends(get_current_user)
):
    return service.apply_discount(booking_id, data, current_user.id)


@router.get("/bookings/{booking_id}/late-checkout-preview", response_model=LateCheckoutPreviewResponse)
def preview_late_checkout(
    booking_id: int,
    service: LedgerService = Depends(get_ledger_service),
    current_user: Employee = Depends(get_current_user)
):
    """Late-checkout charge if the guest left now"""
    return service.preview_late_checkout(booking_id)


@router.post("/bookings/{booking_id}/checkout", response_model=CheckoutResponse)
def checkout(
    booking_id: int,
    data: Optional[CheckoutRequest] = None,
    service: LedgerService = Depends(get_ledger_service),
    current_user: Employee = Depends(get_current_user)
):
    """Commit the late charge, verify the balance and release the room"""
    settle_with = data.settle_with if data else None
    return service.checkout(booking_id, current_user.id, settle_with=settle_with)
