"""
Pydantic schemas
Request/response validation for the front-desk API
"""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List, Dict
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from innkeeper.models.ontology import (
    RoomStatus, BookingStatus, StayKind, ChargeType, DiscountType,
    PaymentMethod, CashierSessionStatus, EmployeeRole
)


# ============== Auth ==============

class LoginRequest(BaseModel):
    username: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    employee_id: int
    role: EmployeeRole
    full_name: str


# ============== Rooms ==============

class RoomCreate(BaseModel):
    room_number: str = Field(..., max_length=10)
    room_type: str = Field(default="standard", max_length=50)
    floor: int = 1
    max_occupancy: int = Field(default=2, ge=1)
    daily_price: Decimal = Field(..., ge=0)
    short_stay_3h_price: Decimal = Field(default=Decimal("0"), ge=0)
    short_stay_6h_price: Decimal = Field(default=Decimal("0"), ge=0)


class RoomPriceUpdate(BaseModel):
    daily_price: Optional[Decimal] = Field(None, ge=0)
    short_stay_3h_price: Optional[Decimal] = Field(None, ge=0)
    short_stay_6h_price: Optional[Decimal] = Field(None, ge=0)


class RoomResponse(BaseModel):
    id: int
    room_number: str
    room_type: str
    floor: Optional[int] = None
    max_occupancy: Optional[int] = None
    status: RoomStatus
    daily_price: Decimal
    short_stay_3h_price: Optional[Decimal] = None
    short_stay_6h_price: Optional[Decimal] = None
    model_config = ConfigDict(from_attributes=True)


# ============== Customers ==============

class CustomerCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    document_type: str = Field(default="CI", max_length=20)
    document_number: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = Field(None, pattern=r"^\+591\d{8}$")
    whatsapp: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = None
    city: Optional[str] = None
    country: str = "Bolivia"
    age: Optional[int] = Field(None, ge=0, le=130)
    nationality: str = "Bolivia"
    origin: Optional[str] = None


class CustomerResponse(BaseModel):
    id: int
    full_name: str
    document_type: Optional[str] = None
    document_number: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    total_stays: int = 0
    total_spent: Decimal = Decimal("0")
    is_frequent: bool = False
    last_stay_date: Optional[date] = None
    model_config = ConfigDict(from_attributes=True)


# ============== Check-in ==============

class CheckInRequest(BaseModel):
    customer_id: int
    room_id: int
    stay_kind: StayKind = StayKind.DAILY
    check_in: Optional[datetime] = None
    expected_checkout: Optional[datetime] = None
    number_of_nights: int = Field(default=1, ge=1)
    number_of_hours: Optional[int] = Field(None, ge=1, le=24)
    number_of_guests: int = Field(default=1, ge=1)
    notes: Optional[str] = None
    additional_income: Decimal = Field(default=Decimal("0"), ge=0)

    @model_validator(mode="after")
    def hourly_needs_hours(self):
        if self.stay_kind == StayKind.HOURLY and not self.number_of_hours:
            raise ValueError("number_of_hours is required for hourly stays")
        return self


class GuestRegistration(BaseModel):
    """Walk-in: create the customer and check in within one operation"""
    full_name: str = Field(..., min_length=1, max_length=100)
    document_number: str = Field(..., min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    whatsapp: Optional[str] = Field(None, max_length=20)
    age: Optional[int] = Field(None, ge=0, le=130)
    nationality: Optional[str] = None
    origin: Optional[str] = None
    room_id: int
    stay_kind: StayKind = StayKind.DAILY
    number_of_hours: Optional[int] = Field(None, ge=1, le=24)
    number_of_nights: int = Field(default=1, ge=1)
    prorate_hours: bool = False
    check_in: Optional[datetime] = None
    expected_checkout: Optional[datetime] = None
    additional_income: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None


class BookingResponse(BaseModel):
    id: int
    booking_code: str
    room_id: int
    customer_id: int
    cashier_id: Optional[int] = None
    status: BookingStatus
    stay_kind: StayKind
    check_in: datetime
    expected_checkout: datetime
    check_out: Optional[datetime] = None
    number_of_nights: Optional[int] = None
    number_of_hours: Optional[int] = None
    base_price: Decimal
    additional_charges: Decimal
    discounts: Decimal
    late_checkout_charge: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance: Decimal
    model_config = ConfigDict(from_attributes=True)


# ============== Charges ==============

class ChargeItem(BaseModel):
    product_id: Optional[int] = None
    description: str = Field(..., min_length=1, max_length=200)
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal = Field(..., ge=0)
    charge_type: ChargeType = ChargeType.PRODUCT


class AddChargesRequest(BaseModel):
    items: List[ChargeItem] = Field(..., min_length=1)


class ChargesAddedResponse(BaseModel):
    booking_id: int
    charge_ids: List[int]
    total_added: Decimal
    new_total: Decimal
    replayed: bool = False
    notification_sent: bool = False
    warnings: List[str] = []
    model_config = ConfigDict(from_attributes=True)


class ChargeResponse(BaseModel):
    id: int
    product_id: Optional[int] = None
    charge_type: ChargeType
    description: str
    quantity: int
    unit_price: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# ============== Discounts ==============

class DiscountRequest(BaseModel):
    discount_type: DiscountType
    discount_value: Decimal = Field(..., ge=0)
    reason: str = Field(..., min_length=1)
    authorized_by: Optional[int] = None


class DiscountAppliedResponse(BaseModel):
    discount_id: int
    discount_amount: Decimal
    new_total: Decimal
    model_config = ConfigDict(from_attributes=True)


class DiscountResponse(BaseModel):
    id: int
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Decimal
    reason: str
    authorized_by: Optional[int] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# ============== Payments ==============

class PaymentSplitCreate(BaseModel):
    payment_method: PaymentMethod
    amount: Decimal = Field(..., gt=0)
    card_last_digits: Optional[str] = Field(None, min_length=4, max_length=4)
    transaction_reference: Optional[str] = None


class PaymentCreate(BaseModel):
    booking_id: int
    amount: Decimal = Field(..., ge=Decimal("0.01"))
    payment_method: PaymentMethod
    payment_splits: Optional[List[PaymentSplitCreate]] = None
    card_last_digits: Optional[str] = Field(None, min_length=4, max_length=4)
    transaction_reference: Optional[str] = None
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    cashier_id: int
    amount: Decimal
    payment_method: PaymentMethod
    payment_date: datetime
    card_last_digits: Optional[str] = None
    transaction_reference: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class PaymentReceiptResponse(BaseModel):
    payment_id: int
    new_balance: Decimal
    replayed: bool = False
    notification_sent: bool = False
    warnings: List[str] = []
    model_config = ConfigDict(from_attributes=True)


# ============== Refunds ==============

class RefundCreate(BaseModel):
    booking_id: int
    payment_id: Optional[int] = None
    amount: Decimal = Field(..., ge=Decimal("0.01"))
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None
    admin_password: str = Field(..., min_length=1)
    admin_id: Optional[int] = None


class RefundResponse(BaseModel):
    id: int
    booking_id: int
    payment_id: Optional[int] = None
    authorized_by: int
    amount: Decimal
    reason: str
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# ============== Late checkout / checkout ==============

class LateCheckoutPreviewResponse(BaseModel):
    is_late: bool
    hours_late: int
    hourly_rate: Decimal
    late_checkout_charge: Decimal
    new_total: Decimal
    new_balance: Decimal
    committed: bool
    model_config = ConfigDict(from_attributes=True)


class CheckoutRequest(BaseModel):
    """settle_with: pay whatever is still owed (late fee included) in the same step"""
    settle_with: Optional[PaymentMethod] = None


class CheckoutResponse(BaseModel):
    booking_id: int
    late_checkout_charge: Decimal
    final_total: Decimal
    settled_amount: Decimal = Decimal("0")
    notification_sent: bool
    warnings: List[str] = []
    model_config = ConfigDict(from_attributes=True)


class BookingDetailResponse(BaseModel):
    booking: BookingResponse
    room_number: str
    customer_name: str
    charges: List[ChargeResponse]
    payments: List[PaymentResponse]
    discounts: List[DiscountResponse]
    refunds: List[RefundResponse]


class ActiveBookingResponse(BookingResponse):
    room_number: str
    customer_name: str
    is_late: bool
    late_checkout_hours: int
    pending_late_checkout_charge: Decimal
    current_balance: Decimal


# ============== Cash register ==============

class CashOpenRequest(BaseModel):
    initial_cash: Decimal = Field(..., ge=0)


class CashCloseRequest(BaseModel):
    actual_cash: Decimal = Field(..., ge=0)
    notes: Optional[str] = None


class CashSessionResponse(BaseModel):
    id: int
    cashier_id: int
    opening_time: datetime
    closing_time: Optional[datetime] = None
    initial_cash: Decimal
    status: CashierSessionStatus
    model_config = ConfigDict(from_attributes=True)


class SessionSnapshotResponse(BaseModel):
    session_id: int
    cashier_id: int
    opening_time: datetime
    initial_cash: Decimal
    totals_by_method: Dict[PaymentMethod, Decimal]
    total_transactions: int
    expected_cash: Decimal
    total_collected: Decimal
    model_config = ConfigDict(from_attributes=True)


class SessionCloseResponse(BaseModel):
    session_id: int
    status: CashierSessionStatus
    closing_time: datetime
    totals_by_method: Dict[PaymentMethod, Decimal]
    expected_cash: Decimal
    actual_cash: Decimal
    difference: Decimal
    model_config = ConfigDict(from_attributes=True)


# ============== Blacklist / catalog ==============

class BlacklistCreate(BaseModel):
    document_number: str = Field(..., min_length=1, max_length=50)
    full_name: Optional[str] = None
    reason: str = Field(..., min_length=1)


class BlacklistResponse(BaseModel):
    id: int
    document_number: str
    full_name: Optional[str] = None
    reason: str
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ProductResponse(BaseModel):
    id: int
    name: str
    category: Optional[str] = None
    unit_price: Decimal
    tax_rate: Decimal
    track_inventory: bool
    stock_quantity: int
    is_active: bool
    model_config = ConfigDict(from_attributes=True)

    @field_validator("tax_rate", mode="before")
    @classmethod
    def default_tax_rate(cls, v):
        return v if v is not None else Decimal("0")
