"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.enums import DiscountType, PaymentMethod, VoucherTargetType


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class BookingDetailRequest(BaseModel):
    """Room type line item request DTO"""
    room_type_id: UUID
    quantity: int = Field(ge=1)
    price_per_night: Decimal = Field(ge=0)
    nights: Optional[int] = Field(None, ge=1, description="Defaults to the length of the stay")


class CreateBookingRequest(BaseModel):
    """Create booking request DTO"""
    property_id: UUID
    check_in_date: date
    check_out_date: date
    number_of_guests: int = Field(ge=1)
    booking_details: List[BookingDetailRequest] = Field(min_length=1)
    special_requests: Optional[str] = None
    voucher_code: Optional[str] = None


class CancelBookingRequest(BaseModel):
    """Cancel booking request DTO"""
    reason: Optional[str] = None
    refund: bool = Field(default=True, description="Refund a captured payment, if any")


class BookingDetailResponse(BaseModel):
    booking_detail_id: UUID
    room_type_id: UUID
    quantity: int
    nights: int
    price_per_night: Decimal
    discount_amount: Decimal
    total_price: Decimal


class BookingHistoryResponse(BaseModel):
    description: str
    status: str
    changed_at: datetime
    changed_by: Optional[UUID] = None


class BookingResponse(BaseModel):
    """Booking response DTO"""
    booking_id: UUID
    user_id: UUID
    property_id: UUID
    check_in_date: date
    check_out_date: date
    nights: int
    number_of_guests: int
    status: str
    total_price: Decimal
    voucher_code: Optional[str] = None
    voucher_discount: Decimal
    special_requests: Optional[str] = None
    booking_details: List[BookingDetailResponse]
    booking_history: List[BookingHistoryResponse]
    created_at: datetime
    updated_at: Optional[datetime] = None


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================

class InitiatePaymentRequest(BaseModel):
    """Initiate payment request DTO"""
    booking_id: UUID
    payment_method: PaymentMethod = PaymentMethod.VNPAY
    return_url: str


class InitiatePaymentResponse(BaseModel):
    payment_id: UUID
    payment_url: str


class RefundPaymentRequest(BaseModel):
    """Refund payment request DTO"""
    reason: str = "Refund requested"


class PaymentResponse(BaseModel):
    """Payment response DTO"""
    payment_id: UUID
    booking_id: UUID
    amount: Decimal
    payment_method: str
    status: str
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    refund_transaction_id: Optional[str] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime


# ============================================================================
# VOUCHER SCHEMAS
# ============================================================================

class VoucherTargetRequest(BaseModel):
    target_type: VoucherTargetType
    partner_id: Optional[UUID] = None
    property_id: Optional[UUID] = None
    room_type_id: Optional[UUID] = None


class CreateVoucherRequest(BaseModel):
    """Create voucher request DTO"""
    code: str = Field(min_length=1, max_length=50)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal = Field(gt=0)
    minimum_order_amount: Optional[Decimal] = Field(None, ge=0)
    maximum_discount_amount: Optional[Decimal] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, ge=0)
    usage_limit_per_user: Optional[int] = Field(None, ge=0)
    start_date: datetime
    end_date: datetime
    targets: List[VoucherTargetRequest] = []


class UpdateVoucherRequest(BaseModel):
    """Update voucher request DTO; `version` is the version the client last read"""
    version: Optional[int] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    minimum_order_amount: Optional[Decimal] = Field(None, ge=0)
    maximum_discount_amount: Optional[Decimal] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, ge=0)
    usage_limit_per_user: Optional[int] = Field(None, ge=0)


class VoucherStateRequest(BaseModel):
    version: Optional[int] = None


class PreviewVoucherRequest(BaseModel):
    """Preview voucher request DTO"""
    code: str
    order_amount: Decimal = Field(ge=0)
    property_id: Optional[UUID] = None
    room_type_id: Optional[UUID] = None


class VoucherTargetResponse(BaseModel):
    voucher_target_id: UUID
    target_type: str
    partner_id: Optional[UUID] = None
    property_id: Optional[UUID] = None
    room_type_id: Optional[UUID] = None


class VoucherResponse(BaseModel):
    """Voucher response DTO"""
    voucher_id: UUID
    code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: Decimal
    minimum_order_amount: Optional[Decimal] = None
    maximum_discount_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    usage_limit_per_user: Optional[int] = None
    used_count: int
    start_date: datetime
    end_date: datetime
    status: str
    creator_type: str
    creator_id: UUID
    targets: List[VoucherTargetResponse]
    version: int


class VoucherPreviewResponse(BaseModel):
    voucher_id: UUID
    code: str
    order_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal


class VoucherUsageStatsResponse(BaseModel):
    voucher_id: UUID
    code: str
    used_count: int
    usage_limit: Optional[int] = None
    usage_limit_per_user: Optional[int] = None
    remaining_uses: Optional[int] = None
    total_discount_given: Decimal


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str

class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None

class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: str
    disabled: bool
