"""Application Services - Business use cases"""
import logging
from uuid import UUID
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict

from domain.repositories import UnitOfWork, PaymentGateway, PropertyCatalog
from domain.entities import Booking, Payment, Voucher
from domain.enums import (
    BookingStatus, PaymentStatus, PaymentMethod, DiscountType, VoucherCreatorType,
    VoucherTargetType, RedemptionOutcome
)
from domain.errors import (
    Result, ConcurrencyConflictError, BookingErrors, PaymentErrors, VoucherErrors
)
from domain.value_objects import (
    BookingDetail, VoucherTarget, VoucherRedemption, VoucherApplication, quantize_money, utcnow
)

logger = logging.getLogger(__name__)

UnitOfWorkFactory = Callable[[], UnitOfWork]


# ============================================================================
# INPUT / OUTPUT MODELS
# ============================================================================

class BookingDetailInput(BaseModel):
    """Requested room type line item; nights default to the stay length"""
    room_type_id: UUID
    quantity: int
    price_per_night: Decimal
    nights: Optional[int] = None


class VoucherTargetInput(BaseModel):
    target_type: VoucherTargetType
    partner_id: Optional[UUID] = None
    property_id: Optional[UUID] = None
    room_type_id: Optional[UUID] = None


class PaymentInitiation(BaseModel):
    payment_id: UUID
    payment_url: str

    model_config = ConfigDict(frozen=True)


class VoucherUsageStats(BaseModel):
    voucher_id: UUID
    code: str
    used_count: int
    usage_limit: Optional[int] = None
    usage_limit_per_user: Optional[int] = None
    remaining_uses: Optional[int] = None
    total_discount_given: Decimal

    model_config = ConfigDict(frozen=True)


REDEMPTION_ERRORS = {
    RedemptionOutcome.USAGE_LIMIT_REACHED: VoucherErrors.USAGE_LIMIT_REACHED,
    RedemptionOutcome.USER_LIMIT_REACHED: VoucherErrors.USER_LIMIT_REACHED,
    RedemptionOutcome.VOUCHER_NOT_FOUND: VoucherErrors.NOT_FOUND,
}


def _log_rejection(action: str, result: Result) -> None:
    logger.warning(f"{action} rejected: {', '.join(e.code for e in result.errors)}")


class BookingService:
    """Service for Booking business use cases"""

    def __init__(self,
                 unit_of_work_factory: UnitOfWorkFactory,
                 property_catalog: PropertyCatalog,
                 release_voucher_on_cancel: bool = False,
                 clock: Callable[[], datetime] = utcnow):
        self.unit_of_work_factory = unit_of_work_factory
        self.property_catalog = property_catalog
        self.release_voucher_on_cancel = release_voucher_on_cancel
        self.clock = clock

    async def create_booking(
        self,
        user_id: UUID,
        property_id: UUID,
        check_in_date: date,
        check_out_date: date,
        number_of_guests: int,
        booking_details: List[BookingDetailInput],
        special_requests: Optional[str] = None,
        voucher_code: Optional[str] = None
    ) -> Result[Booking]:
        """Price a new booking, optionally redeem a voucher, and persist it as PENDING"""
        if not booking_details:
            return Result.failure(BookingErrors.NO_BOOKING_DETAILS)

        booking_result = Booking.create(
            user_id=user_id,
            property_id=property_id,
            check_in_date=check_in_date,
            check_out_date=check_out_date,
            number_of_guests=number_of_guests,
            special_requests=special_requests,
            today=self.clock().date()
        )
        if booking_result.is_failure:
            _log_rejection("Booking creation", booking_result)
            return booking_result
        booking = booking_result.value

        stay_nights = booking.calculate_nights()
        for item in booking_details:
            detail_result = BookingDetail.create(
                room_type_id=item.room_type_id,
                quantity=item.quantity,
                nights=item.nights if item.nights is not None else stay_nights,
                price_per_night=item.price_per_night
            )
            if detail_result.is_failure:
                _log_rejection("Booking creation", detail_result)
                return Result.failure(*detail_result.errors)
            booking.add_booking_detail(detail_result.value)
        booking.recalculate_total_price()

        async with self.unit_of_work_factory() as uow:
            redeemed = False
            if voucher_code:
                voucher_result = await self._redeem_voucher(uow, booking, voucher_code)
                if voucher_result.is_failure:
                    _log_rejection(f"Voucher {voucher_code} on booking", voucher_result)
                    return Result.failure(*voucher_result.errors)
                redeemed = True

            try:
                await uow.bookings.save(booking)
                await uow.commit()
            except Exception:
                if redeemed:
                    await uow.vouchers.release_redemption(booking.booking_id)
                logger.exception(f"Failed to persist booking {booking.booking_id}")
                raise

        logger.info(
            f"Created booking {booking.booking_id} for user {user_id} "
            f"total={booking.total_price} voucher={booking.voucher_code}"
        )
        return Result.success(booking)

    async def _redeem_voucher(self, uow: UnitOfWork, booking: Booking, code: str) -> Result[None]:
        voucher = await uow.vouchers.find_by_code(code)
        if voucher is None:
            return Result.failure(VoucherErrors.NOT_FOUND)

        validation = voucher.validate_for_use(self.clock())
        if validation.is_failure:
            return validation

        partner_id = await self.property_catalog.get_partner_id(booking.property_id)
        room_type_ids = voucher.applicable_room_type_ids(property_id=booking.property_id, partner_id=partner_id)
        eligible = booking.eligible_details(room_type_ids)
        if not eligible:
            return Result.failure(VoucherErrors.NOT_APPLICABLE)

        subtotal = sum((d.total_price for d in eligible), Decimal("0"))
        minimum = voucher.check_minimum_order(subtotal)
        if minimum.is_failure:
            return minimum

        discount = voucher.calculate_discount(subtotal)
        outcome = await uow.vouchers.try_redeem(
            VoucherRedemption(
                voucher_id=voucher.voucher_id,
                user_id=booking.user_id,
                booking_id=booking.booking_id,
                discount_amount=discount
            )
        )
        if outcome != RedemptionOutcome.REDEEMED:
            return Result.failure(REDEMPTION_ERRORS[outcome])

        applied = booking.apply_voucher_discount(voucher.code, discount, room_type_ids)
        if applied.is_failure:
            await uow.vouchers.release_redemption(booking.booking_id)
        return applied

    async def get_booking(self, booking_id: UUID) -> Result[Booking]:
        """Get booking by ID"""
        async with self.unit_of_work_factory() as uow:
            booking = await uow.bookings.find_by_id(booking_id)
        if booking is None:
            return Result.failure(BookingErrors.NOT_FOUND)
        return Result.success(booking)

    async def get_user_bookings(self, user_id: UUID) -> List[Booking]:
        """Get all bookings of a user"""
        async with self.unit_of_work_factory() as uow:
            return await uow.bookings.find_by_user_id(user_id)

    async def confirm_booking(self, booking_id: UUID, changed_by: Optional[UUID] = None) -> Result[Booking]:
        return await self._transition(booking_id, "confirm", lambda b: b.confirm(changed_by))

    async def complete_booking(self, booking_id: UUID, changed_by: Optional[UUID] = None) -> Result[Booking]:
        return await self._transition(booking_id, "complete", lambda b: b.complete(changed_by))

    async def cancel_booking(
        self,
        booking_id: UUID,
        changed_by: Optional[UUID] = None,
        reason: Optional[str] = None
    ) -> Result[Booking]:
        """Cancel booking; optionally gives its voucher use back"""
        result = await self._transition(booking_id, "cancel", lambda b: b.cancel(changed_by, reason))
        if result.is_success and self.release_voucher_on_cancel and result.value.voucher_code:
            async with self.unit_of_work_factory() as uow:
                await uow.vouchers.release_redemption(booking_id)
        return result

    async def _transition(self, booking_id: UUID, action: str, apply) -> Result[Booking]:
        async with self.unit_of_work_factory() as uow:
            booking = await uow.bookings.find_by_id(booking_id)
            if booking is None:
                return Result.failure(BookingErrors.NOT_FOUND)

            result = apply(booking)
            if result.is_failure:
                _log_rejection(f"Booking {booking_id} {action}", result)
                return Result.failure(*result.errors)

            await uow.bookings.save(booking)
            await uow.commit()

        logger.info(f"Booking {booking_id} is now {booking.status.value}")
        return Result.success(booking)


class PaymentService:
    """Coordinates bookings, payments and the payment gateway"""

    def __init__(self,
                 unit_of_work_factory: UnitOfWorkFactory,
                 payment_gateway: PaymentGateway,
                 booking_service: Optional[BookingService] = None):
        self.unit_of_work_factory = unit_of_work_factory
        self.payment_gateway = payment_gateway
        self.booking_service = booking_service

    async def initiate_payment(
        self,
        booking_id: UUID,
        payment_method: PaymentMethod,
        return_url: str
    ) -> Result[PaymentInitiation]:
        """Open a payment attempt for a pending booking and get the gateway redirect URL"""
        async with self.unit_of_work_factory() as uow:
            booking = await uow.bookings.find_by_id(booking_id)
            if booking is None:
                return Result.failure(BookingErrors.NOT_FOUND)

            if booking.status != BookingStatus.PENDING:
                logger.warning(f"Payment refused for booking {booking_id} in {booking.status.value}")
                return Result.failure(BookingErrors.NOT_PENDING_FOR_PAYMENT)

            existing = await uow.payments.find_by_booking_id(booking_id)
            if any(not p.is_terminal for p in existing):
                logger.warning(f"Booking {booking_id} already has a payment in progress")
                return Result.failure(PaymentErrors.ALREADY_IN_PROGRESS)

            payment_result = Payment.create(booking_id, booking.total_price, payment_method)
            if payment_result.is_failure:
                _log_rejection(f"Payment for booking {booking_id}", payment_result)
                return Result.failure(*payment_result.errors)
            payment = payment_result.value
            payment.mark_as_processing()

            await uow.payments.save(payment)
            await uow.commit()

        url_result = await self.payment_gateway.create_payment_url(
            payment.payment_id,
            payment.amount,
            f"Payment for booking {booking_id}",
            return_url
        )
        if url_result.is_failure:
            async with self.unit_of_work_factory() as uow:
                payment.mark_as_failed()
                await uow.payments.save(payment)
                await uow.commit()
            _log_rejection(f"Payment {payment.payment_id} initiation", url_result)
            return Result.failure(*url_result.errors)

        logger.info(f"Payment {payment.payment_id} initiated for booking {booking_id} amount={payment.amount}")
        return Result.success(PaymentInitiation(payment_id=payment.payment_id, payment_url=url_result.value))

    async def handle_gateway_callback(self, payload: dict) -> Result[Payment]:
        """Apply a verified gateway outcome; repeated callbacks are no-ops"""
        verification = await self.payment_gateway.verify_callback(payload)
        if verification.is_failure:
            _log_rejection("Payment callback", verification)
            return Result.failure(*verification.errors)
        callback = verification.value

        try:
            payment_id = UUID(callback.order_id)
        except ValueError:
            logger.warning(f"Callback with invalid order id {callback.order_id!r}")
            return Result.failure(PaymentErrors.INVALID_PAYMENT_ID)

        async with self.unit_of_work_factory() as uow:
            payment = await uow.payments.find_by_id(payment_id)
            if payment is None:
                return Result.failure(PaymentErrors.NOT_FOUND)

            booking = await uow.bookings.find_by_id(payment.booking_id)
            if booking is None:
                return Result.failure(BookingErrors.NOT_FOUND)

            if payment.is_terminal:
                captured = payment.status in (PaymentStatus.SUCCESS, PaymentStatus.REFUNDED)
                if captured != callback.success:
                    logger.warning(
                        f"Callback for payment {payment_id} reports success={callback.success} "
                        f"but payment is {payment.status.value}; ignored"
                    )
                else:
                    logger.info(f"Duplicate callback for payment {payment_id} ignored")
                return Result.success(payment)

            if not callback.success:
                failed = payment.mark_as_failed()
                if failed.is_failure:
                    return Result.failure(*failed.errors)
                await uow.payments.save(payment)
                await uow.commit()
                logger.info(f"Payment {payment_id} failed: {callback.message}")
                return Result.success(payment)

            if callback.amount is not None and quantize_money(callback.amount) != payment.amount:
                logger.warning(
                    f"Callback amount {callback.amount} does not match payment {payment_id} amount {payment.amount}"
                )
                return Result.failure(PaymentErrors.AMOUNT_MISMATCH)

            succeeded = payment.mark_as_success(callback.transaction_id)
            if succeeded.is_failure:
                _log_rejection(f"Payment {payment_id} success", succeeded)
                return Result.failure(*succeeded.errors)
            await uow.payments.save(payment)

            confirmed = booking.confirm()
            if confirmed.is_failure:
                # Money was captured; keep the payment so it can be refunded
                await uow.commit()
                logger.warning(
                    f"Payment {payment_id} captured but booking {booking.booking_id} "
                    f"is {booking.status.value}; refund required"
                )
                return Result.failure(BookingErrors.NOT_PENDING_FOR_PAYMENT)

            await uow.bookings.save(booking)
            await uow.commit()

        logger.info(f"Payment {payment_id} succeeded (tx {payment.transaction_id}); booking {booking.booking_id} confirmed")
        return Result.success(payment)

    async def refund_payment(self, payment_id: UUID, reason: str) -> Result[Payment]:
        """Refund a successful payment through the gateway; the booking is left as is"""
        async with self.unit_of_work_factory() as uow:
            payment = await uow.payments.find_by_id(payment_id)
            if payment is None:
                return Result.failure(PaymentErrors.NOT_FOUND)

            if not payment.transaction_id:
                logger.warning(f"Refund refused for payment {payment_id}: no transaction id")
                return Result.failure(PaymentErrors.MISSING_TRANSACTION_ID)

            if payment.status != PaymentStatus.SUCCESS:
                logger.warning(f"Refund refused for payment {payment_id} in {payment.status.value}")
                return Result.failure(
                    PaymentErrors.invalid_status_transition(payment.status, PaymentStatus.REFUNDED)
                )

            refund = await self.payment_gateway.process_refund(
                payment.transaction_id, payment.amount, reason, str(payment.payment_id)
            )
            if refund.is_failure:
                _log_rejection(f"Refund of payment {payment_id}", refund)
                return Result.failure(*refund.errors)

            refunded = payment.mark_as_refunded(refund.value)
            if refunded.is_failure:
                return Result.failure(*refunded.errors)

            await uow.payments.save(payment)
            await uow.commit()

        logger.info(f"Payment {payment_id} refunded ({refund.value})")
        return Result.success(payment)

    async def cancel_booking_with_refund(
        self,
        booking_id: UUID,
        changed_by: Optional[UUID] = None,
        reason: Optional[str] = None
    ) -> Result[Booking]:
        """Cancel a booking and refund its captured payment, if any"""
        if self.booking_service is None:
            raise RuntimeError("PaymentService needs a BookingService to cancel bookings")

        cancelled = await self.booking_service.cancel_booking(booking_id, changed_by, reason)
        if cancelled.is_failure:
            return cancelled

        async with self.unit_of_work_factory() as uow:
            payments = await uow.payments.find_by_booking_id(booking_id)

        for payment in payments:
            if payment.status == PaymentStatus.SUCCESS:
                refund = await self.refund_payment(payment.payment_id, reason or "Booking cancelled")
                if refund.is_failure:
                    return Result.failure(*refund.errors)
        return cancelled

    async def get_payment_status(self, payment_id: UUID) -> Result[Payment]:
        async with self.unit_of_work_factory() as uow:
            payment = await uow.payments.find_by_id(payment_id)
        if payment is None:
            return Result.failure(PaymentErrors.NOT_FOUND)
        return Result.success(payment)

    async def get_booking_payments(self, booking_id: UUID) -> List[Payment]:
        async with self.unit_of_work_factory() as uow:
            return await uow.payments.find_by_booking_id(booking_id)


class VoucherService:
    """Service for Voucher business use cases"""

    def __init__(self,
                 unit_of_work_factory: UnitOfWorkFactory,
                 property_catalog: Optional[PropertyCatalog] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.unit_of_work_factory = unit_of_work_factory
        self.property_catalog = property_catalog
        self.clock = clock

    async def create_voucher(
        self,
        creator_id: UUID,
        creator_type: VoucherCreatorType,
        code: str,
        discount_type: DiscountType,
        discount_value: Decimal,
        start_date: datetime,
        end_date: datetime,
        description: Optional[str] = None,
        minimum_order_amount: Optional[Decimal] = None,
        maximum_discount_amount: Optional[Decimal] = None,
        usage_limit: Optional[int] = None,
        usage_limit_per_user: Optional[int] = None,
        targets: Optional[List[VoucherTargetInput]] = None
    ) -> Result[Voucher]:
        """Create voucher; admins without targets get a global voucher"""
        targets = targets or []
        if creator_type == VoucherCreatorType.PARTNER:
            if not targets or any(t.target_type == VoucherTargetType.GLOBAL for t in targets):
                logger.warning(f"Partner {creator_id} tried to create a global voucher {code}")
                return Result.failure(VoucherErrors.UNAUTHORIZED_GLOBAL_CREATION)

        voucher_result = Voucher.create(
            code=code,
            discount_type=discount_type,
            discount_value=discount_value,
            start_date=start_date,
            end_date=end_date,
            creator_type=creator_type,
            creator_id=creator_id,
            description=description,
            minimum_order_amount=minimum_order_amount,
            maximum_discount_amount=maximum_discount_amount,
            usage_limit=usage_limit,
            usage_limit_per_user=usage_limit_per_user
        )
        if voucher_result.is_failure:
            _log_rejection(f"Voucher {code} creation", voucher_result)
            return voucher_result
        voucher = voucher_result.value

        for item in targets:
            target_result = VoucherTarget.create(
                voucher.voucher_id,
                item.target_type,
                partner_id=item.partner_id,
                property_id=item.property_id,
                room_type_id=item.room_type_id
            )
            if target_result.is_failure:
                return Result.failure(*target_result.errors)
            ownership = await self._check_target_ownership(creator_id, creator_type, target_result.value)
            if ownership.is_failure:
                return ownership
            voucher.add_target(target_result.value)

        if not voucher.targets:
            voucher.add_target(VoucherTarget.create_global(voucher.voucher_id))

        async with self.unit_of_work_factory() as uow:
            if await uow.vouchers.find_by_code(voucher.code) is not None:
                logger.warning(f"Voucher code {voucher.code} already exists")
                return Result.failure(VoucherErrors.DUPLICATE_CODE)
            await uow.vouchers.save(voucher)
            await uow.commit()

        logger.info(
            f"Created voucher {voucher.voucher_id} with code {voucher.code} "
            f"by {creator_type.value} {creator_id}"
        )
        return Result.success(voucher)

    async def _check_target_ownership(
        self,
        creator_id: UUID,
        creator_type: VoucherCreatorType,
        target: VoucherTarget
    ) -> Result[None]:
        """A partner may only target itself or properties it owns"""
        if creator_type != VoucherCreatorType.PARTNER:
            return Result.success()
        if target.target_type == VoucherTargetType.PARTNER and target.partner_id != creator_id:
            return Result.failure(VoucherErrors.NOT_OWNER)
        if target.target_type == VoucherTargetType.PROPERTY and self.property_catalog is not None:
            owner = await self.property_catalog.get_partner_id(target.property_id)
            if owner is not None and owner != creator_id:
                return Result.failure(VoucherErrors.NOT_OWNER)
        return Result.success()

    async def update_voucher(
        self,
        voucher_id: UUID,
        actor_id: UUID,
        actor_type: VoucherCreatorType,
        expected_version: Optional[int] = None,
        **changes
    ) -> Result[Voucher]:
        """Update voucher rules; `changes` are the keyword arguments of Voucher.update"""
        return await self._modify(
            voucher_id, actor_id, actor_type, expected_version, "update",
            lambda v: v.update(**changes)
        )

    async def disable_voucher(
        self,
        voucher_id: UUID,
        actor_id: UUID,
        actor_type: VoucherCreatorType,
        expected_version: Optional[int] = None
    ) -> Result[Voucher]:
        return await self._modify(
            voucher_id, actor_id, actor_type, expected_version, "disable", lambda v: v.disable()
        )

    async def enable_voucher(
        self,
        voucher_id: UUID,
        actor_id: UUID,
        actor_type: VoucherCreatorType,
        expected_version: Optional[int] = None
    ) -> Result[Voucher]:
        return await self._modify(
            voucher_id, actor_id, actor_type, expected_version, "enable",
            lambda v: v.enable(self.clock())
        )

    async def _modify(self, voucher_id, actor_id, actor_type, expected_version, action, apply) -> Result[Voucher]:
        async with self.unit_of_work_factory() as uow:
            voucher = await uow.vouchers.find_by_id(voucher_id)
            if voucher is None:
                return Result.failure(VoucherErrors.NOT_FOUND)

            if actor_type != VoucherCreatorType.ADMIN and voucher.creator_id != actor_id:
                logger.warning(f"{actor_id} may not {action} voucher {voucher.code}")
                return Result.failure(VoucherErrors.NOT_OWNER)

            if expected_version is not None and expected_version != voucher.version:
                logger.warning(
                    f"Stale {action} of voucher {voucher.code}: "
                    f"version {expected_version}, current {voucher.version}"
                )
                return Result.failure(VoucherErrors.CONCURRENCY_CONFLICT)

            result = apply(voucher)
            if result.is_failure:
                _log_rejection(f"Voucher {voucher.code} {action}", result)
                return Result.failure(*result.errors)

            await uow.vouchers.save(voucher)
            try:
                await uow.commit()
            except ConcurrencyConflictError as e:
                logger.warning(str(e))
                return Result.failure(VoucherErrors.CONCURRENCY_CONFLICT)

            saved = await uow.vouchers.find_by_id(voucher_id)

        logger.info(f"Voucher {voucher.code} {action}d")
        return Result.success(saved)

    async def preview_voucher(
        self,
        user_id: UUID,
        code: str,
        order_amount: Decimal,
        property_id: Optional[UUID] = None,
        room_type_id: Optional[UUID] = None
    ) -> Result[VoucherApplication]:
        """Run every check a booking would run and price the discount, without redeeming"""
        async with self.unit_of_work_factory() as uow:
            voucher = await uow.vouchers.find_by_code(code)
            if voucher is None:
                return Result.failure(VoucherErrors.NOT_FOUND)

            validation = voucher.validate_for_use(self.clock())
            if validation.is_failure:
                return Result.failure(*validation.errors)

            partner_id = None
            if property_id is not None and self.property_catalog is not None:
                partner_id = await self.property_catalog.get_partner_id(property_id)
            if not voucher.is_applicable(property_id=property_id, room_type_id=room_type_id, partner_id=partner_id):
                return Result.failure(VoucherErrors.NOT_APPLICABLE)

            minimum = voucher.check_minimum_order(order_amount)
            if minimum.is_failure:
                return Result.failure(*minimum.errors)

            if voucher.usage_limit_per_user is not None:
                used = await uow.vouchers.count_user_redemptions(voucher.voucher_id, user_id)
                if used >= voucher.usage_limit_per_user:
                    return Result.failure(VoucherErrors.USER_LIMIT_REACHED)

        discount = voucher.calculate_discount(order_amount)
        return Result.success(
            VoucherApplication(
                voucher_id=voucher.voucher_id,
                code=voucher.code,
                order_amount=quantize_money(order_amount),
                discount_amount=discount,
                final_amount=quantize_money(order_amount - discount)
            )
        )

    async def get_voucher_by_code(self, code: str) -> Result[Voucher]:
        async with self.unit_of_work_factory() as uow:
            voucher = await uow.vouchers.find_by_code(code)
        if voucher is None:
            return Result.failure(VoucherErrors.NOT_FOUND)
        return Result.success(voucher)

    async def get_active_vouchers(self, now: Optional[datetime] = None) -> List[Voucher]:
        async with self.unit_of_work_factory() as uow:
            return await uow.vouchers.find_active(now or self.clock())

    async def get_usage_stats(self, voucher_id: UUID) -> Result[VoucherUsageStats]:
        async with self.unit_of_work_factory() as uow:
            voucher = await uow.vouchers.find_by_id(voucher_id)
            if voucher is None:
                return Result.failure(VoucherErrors.NOT_FOUND)
            redemptions = await uow.vouchers.find_redemptions(voucher_id)

        total = sum((r.discount_amount for r in redemptions if r.is_active), Decimal("0"))
        return Result.success(
            VoucherUsageStats(
                voucher_id=voucher.voucher_id,
                code=voucher.code,
                used_count=voucher.used_count,
                usage_limit=voucher.usage_limit,
                usage_limit_per_user=voucher.usage_limit_per_user,
                remaining_uses=voucher.remaining_uses(),
                total_discount_given=quantize_money(total)
            )
        )
