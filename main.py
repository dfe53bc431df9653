from fastapi import FastAPI, HTTPException, Depends, Request
from uuid import UUID
from typing import List, Optional
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Booking
    CreateBookingRequest, CancelBookingRequest, BookingResponse,
    BookingDetailResponse, BookingHistoryResponse,
    # Payment
    InitiatePaymentRequest, InitiatePaymentResponse, RefundPaymentRequest, PaymentResponse,
    # Voucher
    CreateVoucherRequest, UpdateVoucherRequest, VoucherStateRequest, PreviewVoucherRequest,
    VoucherResponse, VoucherTargetResponse, VoucherPreviewResponse, VoucherUsageStatsResponse,
    # Auth
    Token, UserResponse
)

from api.dependencies import (
    get_current_active_user, get_voucher_manager, get_staff_user, get_admin_user, fake_users_db, get_user
)
from api.errors import raise_for_failure, unwrap
from infrastructure.security import verify_password, create_access_token
from infrastructure.config import get_settings
from infrastructure.logging_config import configure_logging
from domain.auth import User

from application.services import (
    BookingService, PaymentService, VoucherService, BookingDetailInput, VoucherTargetInput
)
from infrastructure.repositories.in_memory_repositories import (
    InMemoryStore, InMemoryUnitOfWork, InMemoryPropertyCatalog
)
from infrastructure.payment.vnpay_gateway import VNPayGateway
from domain.entities import Booking
from domain.enums import (
    BookingStatus, PaymentStatus, PaymentMethod, DiscountType, VoucherStatus,
    VoucherTargetType, VoucherCreatorType, UserRole
)
from domain.errors import BookingErrors, Result
from domain.repositories import PaymentGateway

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(
    title="Lodging Booking API",
    description="Booking, payment and voucher lifecycle with Domain-Driven Design",
    version="1.0.0"
)

# Shared in-memory state
store = InMemoryStore()
property_catalog = InMemoryPropertyCatalog()
vnpay_gateway = VNPayGateway(settings)


def unit_of_work_factory() -> InMemoryUnitOfWork:
    return InMemoryUnitOfWork(store)

# Dependency injection
def get_payment_gateway() -> PaymentGateway:
    return vnpay_gateway

def get_booking_service() -> BookingService:
    return BookingService(
        unit_of_work_factory,
        property_catalog,
        release_voucher_on_cancel=settings.voucher_release_on_cancel
    )

def get_payment_service(
    gateway: PaymentGateway = Depends(get_payment_gateway),
    booking_service: BookingService = Depends(get_booking_service)
) -> PaymentService:
    return PaymentService(unit_of_work_factory, gateway, booking_service)

def get_voucher_service() -> VoucherService:
    return VoucherService(unit_of_work_factory, property_catalog)


def _is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN

def _creator_type(user: User) -> VoucherCreatorType:
    return VoucherCreatorType.ADMIN if _is_admin(user) else VoucherCreatorType.PARTNER

def _ensure_booking_access(booking: Booking, user: User) -> None:
    if booking.user_id != user.user_id and user.role == UserRole.USER:
        raise_for_failure(Result.failure(BookingErrors.UNAUTHORIZED))

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/booking-status", tags=["Enum Reference"])
async def get_booking_statuses():
    """Get all BookingStatus enum values"""
    return {
        "values": [item.value for item in BookingStatus],
        "description": "Booking status values: PENDING, CONFIRMED, CANCELLED, COMPLETED"
    }

@app.get("/api/enums/payment-status", tags=["Enum Reference"])
async def get_payment_statuses():
    """Get all PaymentStatus enum values"""
    return {
        "values": [item.value for item in PaymentStatus],
        "description": "Payment status values: PENDING, PROCESSING, SUCCESS, FAILED, REFUNDED"
    }

@app.get("/api/enums/payment-method", tags=["Enum Reference"])
async def get_payment_methods():
    return {"values": [item.value for item in PaymentMethod]}

@app.get("/api/enums/discount-type", tags=["Enum Reference"])
async def get_discount_types():
    return {"values": [item.value for item in DiscountType]}

@app.get("/api/enums/voucher-status", tags=["Enum Reference"])
async def get_voucher_statuses():
    return {"values": [item.value for item in VoucherStatus]}

@app.get("/api/enums/voucher-target-type", tags=["Enum Reference"])
async def get_voucher_target_types():
    return {"values": [item.value for item in VoucherTargetType]}

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(fake_users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = create_access_token(data={"sub": user.username, "role": user.role.value})
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return UserResponse(
        user_id=current_user.user_id,
        username=current_user.username,
        email=current_user.email,
        full_name=current_user.full_name,
        role=current_user.role.value,
        disabled=current_user.disabled
    )

# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@app.post("/api/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    request: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Create a PENDING booking, optionally discounted by a voucher"""
    result = await service.create_booking(
        user_id=current_user.user_id,
        property_id=request.property_id,
        check_in_date=request.check_in_date,
        check_out_date=request.check_out_date,
        number_of_guests=request.number_of_guests,
        booking_details=[BookingDetailInput(**d.model_dump()) for d in request.booking_details],
        special_requests=request.special_requests,
        voucher_code=request.voucher_code
    )
    return _booking_to_response(unwrap(result))

@app.get("/api/bookings", response_model=List[BookingResponse], tags=["Bookings"])
async def get_my_bookings(
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get bookings of the current user"""
    bookings = await service.get_user_bookings(current_user.user_id)
    return [_booking_to_response(b) for b in bookings]

@app.get("/api/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    booking = unwrap(await service.get_booking(booking_id))
    _ensure_booking_access(booking, current_user)
    return _booking_to_response(booking)

@app.post("/api/bookings/{booking_id}/confirm", response_model=BookingResponse, tags=["Bookings"])
async def confirm_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_staff_user)
):
    """Confirm a pending booking manually (normally done by the payment callback)"""
    result = await service.confirm_booking(booking_id, changed_by=current_user.user_id)
    return _booking_to_response(unwrap(result))

@app.post("/api/bookings/{booking_id}/complete", response_model=BookingResponse, tags=["Bookings"])
async def complete_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_staff_user)
):
    result = await service.complete_booking(booking_id, changed_by=current_user.user_id)
    return _booking_to_response(unwrap(result))

@app.post("/api/bookings/{booking_id}/cancel", response_model=BookingResponse, tags=["Bookings"])
async def cancel_booking(
    booking_id: UUID,
    request: CancelBookingRequest,
    booking_service: BookingService = Depends(get_booking_service),
    payment_service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_active_user)
):
    """Cancel a booking and, unless told otherwise, refund its captured payment"""
    booking = unwrap(await booking_service.get_booking(booking_id))
    _ensure_booking_access(booking, current_user)

    if request.refund:
        result = await payment_service.cancel_booking_with_refund(
            booking_id, changed_by=current_user.user_id, reason=request.reason
        )
    else:
        result = await booking_service.cancel_booking(
            booking_id, changed_by=current_user.user_id, reason=request.reason
        )
    return _booking_to_response(unwrap(result))

@app.get("/api/bookings/{booking_id}/payments", response_model=List[PaymentResponse], tags=["Bookings"])
async def get_booking_payments(
    booking_id: UUID,
    booking_service: BookingService = Depends(get_booking_service),
    payment_service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_active_user)
):
    booking = unwrap(await booking_service.get_booking(booking_id))
    _ensure_booking_access(booking, current_user)
    payments = await payment_service.get_booking_payments(booking_id)
    return [_payment_to_response(p) for p in payments]

# ============================================================================
# PAYMENT ENDPOINTS
# ============================================================================

@app.post("/api/payments", response_model=InitiatePaymentResponse, status_code=201, tags=["Payments"])
async def initiate_payment(
    request: InitiatePaymentRequest,
    booking_service: BookingService = Depends(get_booking_service),
    payment_service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_active_user)
):
    """Start paying a pending booking; returns the gateway redirect URL"""
    booking = unwrap(await booking_service.get_booking(request.booking_id))
    _ensure_booking_access(booking, current_user)

    initiation = unwrap(await payment_service.initiate_payment(
        request.booking_id, request.payment_method, request.return_url
    ))
    return InitiatePaymentResponse(payment_id=initiation.payment_id, payment_url=initiation.payment_url)

@app.get("/api/payments/vnpay-callback", response_model=PaymentResponse, tags=["Payments"])
async def vnpay_callback(
    request: Request,
    service: PaymentService = Depends(get_payment_service)
):
    """Gateway return/IPN endpoint; authenticated by its signature, not by a token"""
    result = await service.handle_gateway_callback(dict(request.query_params))
    return _payment_to_response(unwrap(result))

@app.get("/api/payments/{payment_id}", response_model=PaymentResponse, tags=["Payments"])
async def get_payment_status(
    payment_id: UUID,
    booking_service: BookingService = Depends(get_booking_service),
    payment_service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_active_user)
):
    payment = unwrap(await payment_service.get_payment_status(payment_id))
    booking = unwrap(await booking_service.get_booking(payment.booking_id))
    _ensure_booking_access(booking, current_user)
    return _payment_to_response(payment)

@app.post("/api/payments/{payment_id}/refund", response_model=PaymentResponse, tags=["Payments"])
async def refund_payment(
    payment_id: UUID,
    request: RefundPaymentRequest,
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_admin_user)
):
    """Refund a successful payment (administrators only)"""
    payment = unwrap(await service.refund_payment(payment_id, request.reason))
    return _payment_to_response(payment)

# ============================================================================
# VOUCHER ENDPOINTS
# ============================================================================

@app.post("/api/vouchers", response_model=VoucherResponse, status_code=201, tags=["Vouchers"])
async def create_voucher(
    request: CreateVoucherRequest,
    service: VoucherService = Depends(get_voucher_service),
    current_user: User = Depends(get_voucher_manager)
):
    """Create voucher; a partner must scope it to its own partner, properties or room types"""
    result = await service.create_voucher(
        creator_id=current_user.user_id,
        creator_type=_creator_type(current_user),
        code=request.code,
        discount_type=request.discount_type,
        discount_value=request.discount_value,
        start_date=request.start_date,
        end_date=request.end_date,
        description=request.description,
        minimum_order_amount=request.minimum_order_amount,
        maximum_discount_amount=request.maximum_discount_amount,
        usage_limit=request.usage_limit,
        usage_limit_per_user=request.usage_limit_per_user,
        targets=[VoucherTargetInput(**t.model_dump()) for t in request.targets]
    )
    return _voucher_to_response(unwrap(result))

@app.get("/api/vouchers/active", response_model=List[VoucherResponse], tags=["Vouchers"])
async def get_active_vouchers(
    service: VoucherService = Depends(get_voucher_service),
    current_user: User = Depends(get_current_active_user)
):
    vouchers = await service.get_active_vouchers()
    return [_voucher_to_response(v) for v in vouchers]

@app.post("/api/vouchers/preview", response_model=VoucherPreviewResponse, tags=["Vouchers"])
async def preview_voucher(
    request: PreviewVoucherRequest,
    service: VoucherService = Depends(get_voucher_service),
    current_user: User = Depends(get_current_active_user)
):
    """Price a voucher against an order amount without redeeming it"""
    application = unwrap(await service.preview_voucher(
        user_id=current_user.user_id,
        code=request.code,
        order_amount=request.order_amount,
        property_id=request.property_id,
        room_type_id=request.room_type_id
    ))
    return VoucherPreviewResponse(**application.model_dump())

@app.get("/api/vouchers/code/{code}", response_model=VoucherResponse, tags=["Vouchers"])
async def get_voucher_by_code(
    code: str,
    service: VoucherService = Depends(get_voucher_service),
    current_user: User = Depends(get_current_active_user)
):
    return _voucher_to_response(unwrap(await service.get_voucher_by_code(code)))

@app.get("/api/vouchers/{voucher_id}/stats", response_model=VoucherUsageStatsResponse, tags=["Vouchers"])
async def get_voucher_usage_stats(
    voucher_id: UUID,
    service: VoucherService = Depends(get_voucher_service),
    current_user: User = Depends(get_voucher_manager)
):
    stats = unwrap(await service.get_usage_stats(voucher_id))
    return VoucherUsageStatsResponse(**stats.model_dump())

@app.put("/api/vouchers/{voucher_id}", response_model=VoucherResponse, tags=["Vouchers"])
async def update_voucher(
    voucher_id: UUID,
    request: UpdateVoucherRequest,
    service: VoucherService = Depends(get_voucher_service),
    current_user: User = Depends(get_voucher_manager)
):
    """Update voucher rules; a stale `version` is rejected with 409"""
    changes = request.model_dump(exclude={"version"}, exclude_none=True)
    result = await service.update_voucher(
        voucher_id,
        actor_id=current_user.user_id,
        actor_type=_creator_type(current_user),
        expected_version=request.version,
        **changes
    )
    return _voucher_to_response(unwrap(result))

@app.post("/api/vouchers/{voucher_id}/disable", response_model=VoucherResponse, tags=["Vouchers"])
async def disable_voucher(
    voucher_id: UUID,
    request: Optional[VoucherStateRequest] = None,
    service: VoucherService = Depends(get_voucher_service),
    current_user: User = Depends(get_voucher_manager)
):
    result = await service.disable_voucher(
        voucher_id, current_user.user_id, _creator_type(current_user),
        expected_version=request.version if request else None
    )
    return _voucher_to_response(unwrap(result))

@app.post("/api/vouchers/{voucher_id}/enable", response_model=VoucherResponse, tags=["Vouchers"])
async def enable_voucher(
    voucher_id: UUID,
    request: Optional[VoucherStateRequest] = None,
    service: VoucherService = Depends(get_voucher_service),
    current_user: User = Depends(get_voucher_manager)
):
    result = await service.enable_voucher(
        voucher_id, current_user.user_id, _creator_type(current_user),
        expected_version=request.version if request else None
    )
    return _voucher_to_response(unwrap(result))

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _booking_to_response(booking: Booking) -> BookingResponse:
    """Convert Booking entity to BookingResponse"""
    return BookingResponse(
        booking_id=booking.booking_id,
        user_id=booking.user_id,
        property_id=booking.property_id,
        check_in_date=booking.check_in_date,
        check_out_date=booking.check_out_date,
        nights=booking.calculate_nights(),
        number_of_guests=booking.number_of_guests,
        status=booking.status.value,
        total_price=booking.total_price,
        voucher_code=booking.voucher_code,
        voucher_discount=booking.voucher_discount,
        special_requests=booking.special_requests,
        booking_details=[
            BookingDetailResponse(
                booking_detail_id=d.booking_detail_id,
                room_type_id=d.room_type_id,
                quantity=d.quantity,
                nights=d.nights,
                price_per_night=d.price_per_night,
                discount_amount=d.discount_amount,
                total_price=d.total_price
            )
            for d in booking.booking_details
        ],
        booking_history=[
            BookingHistoryResponse(
                description=h.description,
                status=h.status.value,
                changed_at=h.changed_at,
                changed_by=h.changed_by
            )
            for h in booking.booking_history
        ],
        created_at=booking.created_at,
        updated_at=booking.updated_at
    )

def _payment_to_response(payment) -> PaymentResponse:
    """Convert Payment entity to PaymentResponse"""
    return PaymentResponse(
        payment_id=payment.payment_id,
        booking_id=payment.booking_id,
        amount=payment.amount,
        payment_method=payment.payment_method.value,
        status=payment.status.value,
        transaction_id=payment.transaction_id,
        paid_at=payment.paid_at,
        refund_transaction_id=payment.refund_transaction_id,
        refunded_at=payment.refunded_at,
        created_at=payment.created_at
    )

def _voucher_to_response(voucher) -> VoucherResponse:
    """Convert Voucher entity to VoucherResponse"""
    return VoucherResponse(
        voucher_id=voucher.voucher_id,
        code=voucher.code,
        description=voucher.description,
        discount_type=voucher.discount_type.value,
        discount_value=voucher.discount_value,
        minimum_order_amount=voucher.minimum_order_amount,
        maximum_discount_amount=voucher.maximum_discount_amount,
        usage_limit=voucher.usage_limit,
        usage_limit_per_user=voucher.usage_limit_per_user,
        used_count=voucher.used_count,
        start_date=voucher.start_date,
        end_date=voucher.end_date,
        status=voucher.effective_status().value,
        creator_type=voucher.creator_type.value,
        creator_id=voucher.creator_id,
        targets=[
            VoucherTargetResponse(
                voucher_target_id=t.voucher_target_id,
                target_type=t.target_type.value,
                partner_id=t.partner_id,
                property_id=t.property_id,
                room_type_id=t.room_type_id
            )
            for t in voucher.targets
        ],
        version=voucher.version
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
