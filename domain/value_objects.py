"""Domain Value Objects and child entities"""
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID, uuid4
from typing import Optional

from domain.enums import BookingStatus, VoucherTargetType
from domain.errors import BookingErrors, Result, VoucherErrors

CENT = Decimal("0.01")


def quantize_money(amount) -> Decimal:
    """Round a monetary amount to 2 decimal places"""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BookingDetail(BaseModel):
    """Child Entity: one room type line item of a booking"""
    booking_detail_id: UUID = Field(default_factory=uuid4)
    booking_id: Optional[UUID] = None
    room_type_id: UUID
    quantity: int
    nights: int
    price_per_night: Decimal
    discount_amount: Decimal = Decimal("0")
    total_price: Decimal = Decimal("0")

    model_config = ConfigDict(from_attributes=True)

    @staticmethod
    def create(
        room_type_id: UUID,
        quantity: int,
        nights: int,
        price_per_night: Decimal,
        discount_amount: Decimal = Decimal("0"),
        booking_id: Optional[UUID] = None
    ) -> Result["BookingDetail"]:
        """Create a priced line item"""
        if quantity <= 0:
            return Result.failure(BookingErrors.INVALID_ROOM_QUANTITY)
        if nights <= 0:
            return Result.failure(BookingErrors.INVALID_NIGHTS)
        if price_per_night < 0:
            return Result.failure(BookingErrors.INVALID_PRICE_PER_NIGHT)

        gross = BookingDetail.compute_gross(quantity, nights, price_per_night)
        if discount_amount < 0 or discount_amount > gross:
            return Result.failure(BookingErrors.INVALID_DISCOUNT_AMOUNT)

        detail = BookingDetail(
            booking_id=booking_id,
            room_type_id=room_type_id,
            quantity=quantity,
            nights=nights,
            price_per_night=quantize_money(price_per_night),
            discount_amount=quantize_money(discount_amount),
            total_price=quantize_money(gross - discount_amount),
        )
        return Result.success(detail)

    @property
    def gross_price(self) -> Decimal:
        """Price before discount"""
        return self.compute_gross(self.quantity, self.nights, self.price_per_night)

    def update_discount(self, new_discount_amount: Decimal) -> Result[None]:
        """Replace the discount and recompute the line total"""
        if new_discount_amount < 0 or new_discount_amount > self.gross_price:
            return Result.failure(BookingErrors.INVALID_DISCOUNT_AMOUNT)

        self.discount_amount = quantize_money(new_discount_amount)
        self.total_price = quantize_money(self.gross_price - self.discount_amount)
        return Result.success()

    @staticmethod
    def compute_gross(quantity: int, nights: int, price_per_night: Decimal) -> Decimal:
        return quantize_money(Decimal(price_per_night) * quantity * nights)


class BookingHistory(BaseModel):
    """Child Entity: immutable audit entry for a booking status change"""
    booking_history_id: UUID = Field(default_factory=uuid4)
    booking_id: UUID
    description: str
    status: BookingStatus
    changed_at: datetime = Field(default_factory=utcnow)
    changed_by: Optional[UUID] = None

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @property
    def is_system_change(self) -> bool:
        return self.changed_by is None


class VoucherTarget(BaseModel):
    """Child Entity: applicability scope of a voucher"""
    voucher_target_id: UUID = Field(default_factory=uuid4)
    voucher_id: UUID
    target_type: VoucherTargetType
    partner_id: Optional[UUID] = None
    property_id: Optional[UUID] = None
    room_type_id: Optional[UUID] = None

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @staticmethod
    def create_global(voucher_id: UUID) -> "VoucherTarget":
        return VoucherTarget(voucher_id=voucher_id, target_type=VoucherTargetType.GLOBAL)

    @staticmethod
    def create_for_partner(voucher_id: UUID, partner_id: UUID) -> "VoucherTarget":
        return VoucherTarget(
            voucher_id=voucher_id,
            target_type=VoucherTargetType.PARTNER,
            partner_id=partner_id
        )

    @staticmethod
    def create_for_property(voucher_id: UUID, property_id: UUID) -> "VoucherTarget":
        return VoucherTarget(
            voucher_id=voucher_id,
            target_type=VoucherTargetType.PROPERTY,
            property_id=property_id
        )

    @staticmethod
    def create_for_room_type(voucher_id: UUID, room_type_id: UUID) -> "VoucherTarget":
        return VoucherTarget(
            voucher_id=voucher_id,
            target_type=VoucherTargetType.ROOM_TYPE,
            room_type_id=room_type_id
        )

    @staticmethod
    def create(
        voucher_id: UUID,
        target_type: VoucherTargetType,
        partner_id: Optional[UUID] = None,
        property_id: Optional[UUID] = None,
        room_type_id: Optional[UUID] = None
    ) -> Result["VoucherTarget"]:
        """Build a target, checking that exactly the matching identifier is set"""
        populated = {
            VoucherTargetType.PARTNER: partner_id,
            VoucherTargetType.PROPERTY: property_id,
            VoucherTargetType.ROOM_TYPE: room_type_id,
        }
        for kind, identifier in populated.items():
            if kind == target_type and identifier is None:
                return Result.failure(VoucherErrors.INVALID_TARGET)
            if kind != target_type and identifier is not None:
                return Result.failure(VoucherErrors.INVALID_TARGET)

        if target_type == VoucherTargetType.GLOBAL:
            return Result.success(VoucherTarget.create_global(voucher_id))
        if target_type == VoucherTargetType.PARTNER:
            return Result.success(VoucherTarget.create_for_partner(voucher_id, partner_id))
        if target_type == VoucherTargetType.PROPERTY:
            return Result.success(VoucherTarget.create_for_property(voucher_id, property_id))
        return Result.success(VoucherTarget.create_for_room_type(voucher_id, room_type_id))

    def matches(
        self,
        property_id: Optional[UUID] = None,
        room_type_id: Optional[UUID] = None,
        partner_id: Optional[UUID] = None
    ) -> bool:
        """Check whether this target covers the given scope"""
        if self.target_type == VoucherTargetType.GLOBAL:
            return True
        if self.target_type == VoucherTargetType.PROPERTY:
            return property_id is not None and self.property_id == property_id
        if self.target_type == VoucherTargetType.ROOM_TYPE:
            return room_type_id is not None and self.room_type_id == room_type_id
        return partner_id is not None and self.partner_id == partner_id


class VoucherRedemption(BaseModel):
    """Ledger entry: one application of a voucher by a user to a booking"""
    redemption_id: UUID = Field(default_factory=uuid4)
    voucher_id: UUID
    user_id: UUID
    booking_id: UUID
    discount_amount: Decimal
    redeemed_at: datetime = Field(default_factory=utcnow)
    released_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_active(self) -> bool:
        return self.released_at is None

    def release(self) -> None:
        """Stop counting this redemption toward usage limits"""
        if self.released_at is None:
            self.released_at = utcnow()


class VoucherApplication(BaseModel):
    """Result of applying a voucher to an order amount"""
    voucher_id: UUID
    code: str
    order_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal

    model_config = ConfigDict(frozen=True)


class PaymentCallbackResult(BaseModel):
    """Verified content of a gateway callback"""
    order_id: str
    success: bool
    transaction_id: Optional[str] = None
    amount: Optional[Decimal] = None
    message: str = ""

    model_config = ConfigDict(frozen=True)
