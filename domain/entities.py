"""Domain Entities - Aggregates"""
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID, uuid4
from datetime import datetime, date
from typing import Optional, List, Iterable
from decimal import Decimal, ROUND_DOWN

from domain.enums import (
    BookingStatus, PaymentStatus, PaymentMethod, DiscountType, VoucherStatus,
    VoucherCreatorType, VoucherTargetType
)
from domain.errors import Result, BookingErrors, PaymentErrors, VoucherErrors
from domain.value_objects import (
    CENT, BookingDetail, BookingHistory, VoucherTarget, ensure_aware, quantize_money, utcnow
)


class Booking(BaseModel):
    """Booking Aggregate Root Entity"""

    # Identity
    booking_id: UUID = Field(default_factory=uuid4)

    # References to other contexts
    user_id: UUID
    property_id: UUID

    # Stay
    check_in_date: date
    check_out_date: date
    number_of_guests: int
    special_requests: Optional[str] = None

    # Pricing
    total_price: Decimal = Decimal("0")
    voucher_code: Optional[str] = None
    voucher_discount: Decimal = Decimal("0")

    # Status
    status: BookingStatus = BookingStatus.PENDING

    # Collections (child entities)
    booking_details: List[BookingDetail] = []
    booking_history: List[BookingHistory] = []

    # Metadata
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        user_id: UUID,
        property_id: UUID,
        check_in_date: date,
        check_out_date: date,
        number_of_guests: int,
        total_price: Decimal = Decimal("0"),
        special_requests: Optional[str] = None,
        today: Optional[date] = None
    ) -> Result["Booking"]:
        """Create new booking in PENDING with validation"""
        today = today or utcnow().date()
        if check_in_date < today:
            return Result.failure(BookingErrors.INVALID_CHECK_IN_DATE)

        if check_out_date <= check_in_date:
            return Result.failure(BookingErrors.INVALID_CHECK_OUT_DATE)

        if number_of_guests <= 0:
            return Result.failure(BookingErrors.INVALID_GUEST_COUNT)

        if total_price < 0:
            return Result.failure(BookingErrors.INVALID_TOTAL_PRICE)

        booking = Booking(
            user_id=user_id,
            property_id=property_id,
            check_in_date=check_in_date,
            check_out_date=check_out_date,
            number_of_guests=number_of_guests,
            total_price=quantize_money(total_price),
            special_requests=special_requests,
            status=BookingStatus.PENDING
        )
        booking._add_history_entry(f"Booking created with status {booking.status.value}")
        return Result.success(booking)

    # ==================== LINE ITEMS ====================
    def add_booking_detail(self, booking_detail: BookingDetail) -> None:
        """Attach a line item. Call recalculate_total_price once all are attached."""
        booking_detail.booking_id = self.booking_id
        self.booking_details.append(booking_detail)

    def recalculate_total_price(self) -> None:
        """Set total price to the sum of the line items"""
        self.total_price = quantize_money(
            sum((detail.total_price for detail in self.booking_details), Decimal("0"))
        )
        self.updated_at = utcnow()

    def apply_voucher_discount(
        self,
        voucher_code: str,
        discount: Decimal,
        room_type_ids: Optional[Iterable[UUID]] = None
    ) -> Result[None]:
        """Spread a voucher discount over the eligible line items

        Each eligible item takes its proportional share rounded down to the cent,
        capped at its own total. Leftover cents go one at a time to the items with
        the largest rounding remainder that still have room, later items first on ties.
        """
        eligible = self.eligible_details(room_type_ids)
        if not eligible:
            return Result.failure(BookingErrors.NO_ELIGIBLE_DETAILS)

        discount = quantize_money(discount)
        subtotal = sum((d.total_price for d in eligible), Decimal("0"))
        if discount < 0 or discount > subtotal:
            return Result.failure(BookingErrors.INVALID_DISCOUNT_AMOUNT)

        shares = self._split_discount(discount, [d.total_price for d in eligible], subtotal)
        for detail, share in zip(eligible, shares):
            result = detail.update_discount(detail.discount_amount + share)
            if result.is_failure:
                return result

        self.voucher_code = voucher_code
        self.voucher_discount = discount
        self.recalculate_total_price()
        return Result.success()

    @staticmethod
    def _split_discount(discount: Decimal, totals: List[Decimal], subtotal: Decimal) -> List[Decimal]:
        if subtotal == 0:
            return [Decimal("0.00") for _ in totals]

        shares = []
        remainders = []
        for total in totals:
            exact = discount * total / subtotal
            share = min(exact.quantize(CENT, rounding=ROUND_DOWN), total)
            shares.append(share)
            remainders.append(exact - share)

        # the sum of totals covers the discount, so some item always has room
        leftover = discount - sum(shares, Decimal("0"))
        order = sorted(range(len(totals)), key=lambda i: (remainders[i], i), reverse=True)
        while leftover > 0:
            for i in order:
                if leftover <= 0:
                    break
                if shares[i] + CENT <= totals[i]:
                    shares[i] += CENT
                    leftover -= CENT
        return shares

    def eligible_details(self, room_type_ids: Optional[Iterable[UUID]] = None) -> List[BookingDetail]:
        """Line items a scoped discount may apply to (all of them when unscoped)"""
        if room_type_ids is None:
            return list(self.booking_details)
        wanted = set(room_type_ids)
        return [d for d in self.booking_details if d.room_type_id in wanted]

    # ==================== STATE TRANSITION METHODS ====================
    def confirm(self, changed_by: Optional[UUID] = None) -> Result[None]:
        """Confirm a pending booking"""
        if self.status != BookingStatus.PENDING:
            return Result.failure(
                BookingErrors.invalid_status_transition(self.status, BookingStatus.CONFIRMED)
            )

        self._transition(BookingStatus.CONFIRMED, "Booking confirmed", changed_by)
        return Result.success()

    def cancel(self, changed_by: Optional[UUID] = None, reason: Optional[str] = None) -> Result[None]:
        """Cancel a pending or confirmed booking"""
        if self.status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            return Result.failure(
                BookingErrors.invalid_status_transition(self.status, BookingStatus.CANCELLED)
            )

        description = "Booking cancelled" if not reason else f"Booking cancelled: {reason}"
        self._transition(BookingStatus.CANCELLED, description, changed_by)
        return Result.success()

    def complete(self, changed_by: Optional[UUID] = None) -> Result[None]:
        """Mark a confirmed stay as completed"""
        if self.status != BookingStatus.CONFIRMED:
            return Result.failure(
                BookingErrors.invalid_status_transition(self.status, BookingStatus.COMPLETED)
            )

        self._transition(BookingStatus.COMPLETED, "Booking completed", changed_by)
        return Result.success()

    # ==================== QUERY METHODS ====================
    def calculate_nights(self) -> int:
        return (self.check_out_date - self.check_in_date).days

    # ==================== PRIVATE METHODS ====================
    def _transition(self, status: BookingStatus, description: str, changed_by: Optional[UUID]) -> None:
        self.status = status
        self.updated_at = utcnow()
        self._add_history_entry(description, changed_by)

    def _add_history_entry(self, description: str, changed_by: Optional[UUID] = None) -> None:
        self.booking_history.append(
            BookingHistory(
                booking_id=self.booking_id,
                description=description,
                status=self.status,
                changed_by=changed_by
            )
        )


class Payment(BaseModel):
    """Payment Aggregate Root Entity: one attempt to pay for a booking"""

    payment_id: UUID = Field(default_factory=uuid4)
    booking_id: UUID
    amount: Decimal
    payment_method: PaymentMethod
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    refund_transaction_id: Optional[str] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(from_attributes=True)

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(booking_id: UUID, amount: Decimal, payment_method: PaymentMethod) -> Result["Payment"]:
        if amount <= 0:
            return Result.failure(PaymentErrors.INVALID_AMOUNT)

        return Result.success(
            Payment(
                booking_id=booking_id,
                amount=quantize_money(amount),
                payment_method=payment_method
            )
        )

    # ==================== STATE TRANSITION METHODS ====================
    def mark_as_processing(self) -> Result[None]:
        if self.status != PaymentStatus.PENDING:
            return self._invalid_transition(PaymentStatus.PROCESSING)

        self.status = PaymentStatus.PROCESSING
        return Result.success()

    def mark_as_success(self, transaction_id: Optional[str]) -> Result[None]:
        if self.status != PaymentStatus.PROCESSING:
            return self._invalid_transition(PaymentStatus.SUCCESS)

        if not transaction_id or not transaction_id.strip():
            return Result.failure(PaymentErrors.INVALID_TRANSACTION_ID)

        self.status = PaymentStatus.SUCCESS
        self.transaction_id = transaction_id.strip()
        self.paid_at = utcnow()
        return Result.success()

    def mark_as_failed(self) -> Result[None]:
        """Terminal for this attempt; a retry needs a new Payment"""
        if self.status not in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
            return self._invalid_transition(PaymentStatus.FAILED)

        self.status = PaymentStatus.FAILED
        return Result.success()

    def mark_as_refunded(self, refund_transaction_id: Optional[str] = None) -> Result[None]:
        if self.status != PaymentStatus.SUCCESS:
            return self._invalid_transition(PaymentStatus.REFUNDED)

        if not self.transaction_id:
            return Result.failure(PaymentErrors.MISSING_TRANSACTION_ID)

        self.status = PaymentStatus.REFUNDED
        self.refund_transaction_id = refund_transaction_id
        self.refunded_at = utcnow()
        return Result.success()

    # ==================== QUERY METHODS ====================
    @property
    def is_terminal(self) -> bool:
        """No further gateway outcome is expected for this attempt"""
        return self.status not in (PaymentStatus.PENDING, PaymentStatus.PROCESSING)

    def _invalid_transition(self, target: PaymentStatus) -> Result[None]:
        return Result.failure(PaymentErrors.invalid_status_transition(self.status, target))


class Voucher(BaseModel):
    """Voucher Aggregate Root Entity"""

    voucher_id: UUID = Field(default_factory=uuid4)
    code: str
    description: Optional[str] = None

    # Discount rules
    discount_type: DiscountType
    discount_value: Decimal
    minimum_order_amount: Optional[Decimal] = None
    maximum_discount_amount: Optional[Decimal] = None

    # Usage limits
    usage_limit: Optional[int] = None
    usage_limit_per_user: Optional[int] = None
    used_count: int = 0

    # Validity
    start_date: datetime
    end_date: datetime
    status: VoucherStatus = VoucherStatus.ACTIVE

    # Ownership
    creator_type: VoucherCreatorType
    creator_id: UUID

    targets: List[VoucherTarget] = []

    # Metadata
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    version: int = 1

    model_config = ConfigDict(from_attributes=True)

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        code: str,
        discount_type: DiscountType,
        discount_value: Decimal,
        start_date: datetime,
        end_date: datetime,
        creator_type: VoucherCreatorType,
        creator_id: UUID,
        description: Optional[str] = None,
        minimum_order_amount: Optional[Decimal] = None,
        maximum_discount_amount: Optional[Decimal] = None,
        usage_limit: Optional[int] = None,
        usage_limit_per_user: Optional[int] = None
    ) -> Result["Voucher"]:
        """Create new voucher with validation"""
        if not code or not code.strip():
            return Result.failure(VoucherErrors.INVALID_CODE)

        if discount_value <= 0:
            return Result.failure(VoucherErrors.INVALID_DISCOUNT)
        if discount_type == DiscountType.PERCENTAGE and discount_value > 100:
            return Result.failure(VoucherErrors.INVALID_DISCOUNT)

        start_date = ensure_aware(start_date)
        end_date = ensure_aware(end_date)
        if end_date <= start_date:
            return Result.failure(VoucherErrors.INVALID_DATE_RANGE)

        if usage_limit is not None and usage_limit < 0:
            return Result.failure(VoucherErrors.INVALID_USAGE_LIMIT)

        if usage_limit_per_user is not None and usage_limit_per_user < 0:
            return Result.failure(VoucherErrors.INVALID_USAGE_LIMIT_PER_USER)

        if minimum_order_amount is not None and minimum_order_amount < 0:
            return Result.failure(VoucherErrors.INVALID_MINIMUM_ORDER_AMOUNT)

        if maximum_discount_amount is not None and maximum_discount_amount <= 0:
            return Result.failure(VoucherErrors.INVALID_MAXIMUM_DISCOUNT_AMOUNT)

        return Result.success(
            Voucher(
                code=Voucher.normalize_code(code),
                description=description,
                discount_type=discount_type,
                discount_value=discount_value,
                minimum_order_amount=minimum_order_amount,
                maximum_discount_amount=maximum_discount_amount,
                usage_limit=usage_limit,
                usage_limit_per_user=usage_limit_per_user,
                start_date=start_date,
                end_date=end_date,
                creator_type=creator_type,
                creator_id=creator_id
            )
        )

    @staticmethod
    def normalize_code(code: str) -> str:
        return code.strip().upper()

    # ==================== MODIFICATION METHODS ====================
    def update(
        self,
        description: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        usage_limit: Optional[int] = None,
        usage_limit_per_user: Optional[int] = None,
        minimum_order_amount: Optional[Decimal] = None,
        maximum_discount_amount: Optional[Decimal] = None
    ) -> Result[None]:
        """Update the mutable rules of an enabled voucher"""
        if self.status == VoucherStatus.DISABLED:
            return Result.failure(VoucherErrors.DISABLED)

        new_start = ensure_aware(start_date) if start_date else self.start_date
        new_end = ensure_aware(end_date) if end_date else self.end_date
        if new_end <= new_start:
            return Result.failure(VoucherErrors.INVALID_DATE_RANGE)

        if usage_limit is not None and (usage_limit < 0 or usage_limit < self.used_count):
            return Result.failure(VoucherErrors.INVALID_USAGE_LIMIT)

        if usage_limit_per_user is not None and usage_limit_per_user < 0:
            return Result.failure(VoucherErrors.INVALID_USAGE_LIMIT_PER_USER)

        if minimum_order_amount is not None and minimum_order_amount < 0:
            return Result.failure(VoucherErrors.INVALID_MINIMUM_ORDER_AMOUNT)

        if maximum_discount_amount is not None and maximum_discount_amount <= 0:
            return Result.failure(VoucherErrors.INVALID_MAXIMUM_DISCOUNT_AMOUNT)

        if description is not None:
            self.description = description
        self.start_date = new_start
        self.end_date = new_end
        if usage_limit is not None:
            self.usage_limit = usage_limit
        if usage_limit_per_user is not None:
            self.usage_limit_per_user = usage_limit_per_user
        if minimum_order_amount is not None:
            self.minimum_order_amount = minimum_order_amount
        if maximum_discount_amount is not None:
            self.maximum_discount_amount = maximum_discount_amount

        # An expired voucher whose window was extended becomes usable again
        if self.status == VoucherStatus.EXPIRED and new_end > utcnow():
            self.status = VoucherStatus.ACTIVE

        self.updated_at = utcnow()
        return Result.success()

    def disable(self) -> Result[None]:
        self.status = VoucherStatus.DISABLED
        self.updated_at = utcnow()
        return Result.success()

    def enable(self, now: Optional[datetime] = None) -> Result[None]:
        now = now or utcnow()
        if now > self.end_date:
            return Result.failure(VoucherErrors.EXPIRED)

        self.status = VoucherStatus.ACTIVE
        self.updated_at = utcnow()
        return Result.success()

    def add_target(self, target: VoucherTarget) -> Result[VoucherTarget]:
        if target.voucher_id != self.voucher_id:
            return Result.failure(VoucherErrors.INVALID_TARGET)

        self.targets.append(target)
        self.updated_at = utcnow()
        return Result.success(target)

    def remove_target(self, voucher_target_id: UUID) -> Result[None]:
        for target in self.targets:
            if target.voucher_target_id == voucher_target_id:
                self.targets.remove(target)
                self.updated_at = utcnow()
                return Result.success()
        return Result.failure(VoucherErrors.TARGET_NOT_FOUND)

    def increment_usage_count(self) -> Result[None]:
        """In-aggregate counterpart of the store's conditional increment"""
        if self.has_reached_usage_limit():
            return Result.failure(VoucherErrors.USAGE_LIMIT_REACHED)

        self.used_count += 1
        self.updated_at = utcnow()
        return Result.success()

    def decrement_usage_count(self) -> None:
        if self.used_count > 0:
            self.used_count -= 1
            self.updated_at = utcnow()

    # ==================== VALIDATION ====================
    def validate_for_use(self, now: Optional[datetime] = None) -> Result[None]:
        """Check status, validity window and global usage limit"""
        now = now or utcnow()

        if self.status == VoucherStatus.DISABLED:
            return Result.failure(VoucherErrors.DISABLED)

        if now < self.start_date:
            return Result.failure(VoucherErrors.NOT_STARTED)

        if now > self.end_date or self.status == VoucherStatus.EXPIRED:
            self.status = VoucherStatus.EXPIRED
            return Result.failure(VoucherErrors.EXPIRED)

        if self.has_reached_usage_limit():
            return Result.failure(VoucherErrors.USAGE_LIMIT_REACHED)

        return Result.success()

    def check_minimum_order(self, order_amount: Decimal) -> Result[None]:
        if self.minimum_order_amount is not None and order_amount < self.minimum_order_amount:
            return Result.failure(VoucherErrors.minimum_order_amount_not_met(self.minimum_order_amount))
        return Result.success()

    def is_applicable(
        self,
        property_id: Optional[UUID] = None,
        room_type_id: Optional[UUID] = None,
        partner_id: Optional[UUID] = None
    ) -> bool:
        """True when unscoped, global, or any target matches the given scope"""
        if not self.targets:
            return True
        return any(
            target.matches(property_id=property_id, room_type_id=room_type_id, partner_id=partner_id)
            for target in self.targets
        )

    def applicable_room_type_ids(
        self,
        property_id: Optional[UUID] = None,
        partner_id: Optional[UUID] = None
    ) -> Optional[List[UUID]]:
        """Room types a booking discount is restricted to, or None if it covers the whole order

        The whole order is covered when the voucher is unscoped or a global, property
        or partner target matches. Otherwise only rooms named by room-type targets count.
        """
        if not self.targets:
            return None
        whole_order = any(
            t.target_type != VoucherTargetType.ROOM_TYPE
            and t.matches(property_id=property_id, partner_id=partner_id)
            for t in self.targets
        )
        if whole_order:
            return None
        return [t.room_type_id for t in self.targets if t.target_type == VoucherTargetType.ROOM_TYPE]

    def calculate_discount(self, order_amount: Decimal) -> Decimal:
        """Discount for an order; never negative and never above the order amount"""
        if order_amount <= 0:
            return Decimal("0.00")

        if self.discount_type == DiscountType.PERCENTAGE:
            discount = order_amount * self.discount_value / Decimal("100")
            if self.maximum_discount_amount is not None:
                discount = min(discount, self.maximum_discount_amount)
        else:
            discount = self.discount_value

        return quantize_money(max(Decimal("0"), min(discount, order_amount)))

    def has_reached_usage_limit(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def effective_status(self, now: Optional[datetime] = None) -> VoucherStatus:
        """Stored status, read as EXPIRED once an active voucher is past its end date"""
        if self.status == VoucherStatus.ACTIVE and (now or utcnow()) > self.end_date:
            return VoucherStatus.EXPIRED
        return self.status

    def remaining_uses(self) -> Optional[int]:
        if self.usage_limit is None:
            return None
        return max(0, self.usage_limit - self.used_count)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.status == VoucherStatus.ACTIVE and self.start_date <= now <= self.end_date
