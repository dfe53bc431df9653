"""In-Memory Repository Implementations"""
import logging
import threading
from typing import Optional, List, Dict
from uuid import UUID
from datetime import datetime

from domain.repositories import (
    BookingRepository, PaymentRepository, VoucherRepository, UnitOfWork, PropertyCatalog
)
from domain.entities import Booking, Payment, Voucher
from domain.enums import RedemptionOutcome, VoucherStatus
from domain.errors import ConcurrencyConflictError
from domain.value_objects import VoucherRedemption

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Committed state shared by all units of work.

    Every read and write of the dictionaries below happens under `lock`
    without awaiting, so each critical section is atomic.
    """

    def __init__(self):
        self.bookings: Dict[UUID, Booking] = {}
        self.payments: Dict[UUID, Payment] = {}
        self.vouchers: Dict[UUID, Voucher] = {}
        self.redemptions: List[VoucherRedemption] = []
        self.lock = threading.RLock()


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of BookingRepository"""

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._staged: Dict[UUID, Booking] = {}

    async def save(self, booking: Booking) -> Booking:
        """Stage booking"""
        self._staged[booking.booking_id] = booking.model_copy(deep=True)
        return booking

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        if booking_id in self._staged:
            return self._staged[booking_id].model_copy(deep=True)
        with self._store.lock:
            booking = self._store.bookings.get(booking_id)
            return booking.model_copy(deep=True) if booking else None

    async def find_by_user_id(self, user_id: UUID) -> List[Booking]:
        """Find bookings by user ID, newest first"""
        with self._store.lock:
            found = {b.booking_id: b for b in self._store.bookings.values() if b.user_id == user_id}
        found.update({b.booking_id: b for b in self._staged.values() if b.user_id == user_id})
        bookings = [b.model_copy(deep=True) for b in found.values()]
        return sorted(bookings, key=lambda b: b.created_at, reverse=True)

    def _publish(self) -> None:
        self._store.bookings.update(self._staged)
        self._staged = {}


class InMemoryPaymentRepository(PaymentRepository):
    """In-memory implementation of PaymentRepository"""

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._staged: Dict[UUID, Payment] = {}

    async def save(self, payment: Payment) -> Payment:
        """Stage payment"""
        self._staged[payment.payment_id] = payment.model_copy(deep=True)
        return payment

    async def find_by_id(self, payment_id: UUID) -> Optional[Payment]:
        """Find payment by ID"""
        if payment_id in self._staged:
            return self._staged[payment_id].model_copy(deep=True)
        with self._store.lock:
            payment = self._store.payments.get(payment_id)
            return payment.model_copy(deep=True) if payment else None

    async def find_by_booking_id(self, booking_id: UUID) -> List[Payment]:
        """Find payments of a booking, oldest first"""
        with self._store.lock:
            found = {p.payment_id: p for p in self._store.payments.values() if p.booking_id == booking_id}
        found.update({p.payment_id: p for p in self._staged.values() if p.booking_id == booking_id})
        payments = [p.model_copy(deep=True) for p in found.values()]
        return sorted(payments, key=lambda p: p.created_at)

    def _publish(self) -> None:
        self._store.payments.update(self._staged)
        self._staged = {}


class InMemoryVoucherRepository(VoucherRepository):
    """In-memory implementation of VoucherRepository with an atomic redemption ledger"""

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._staged: Dict[UUID, Voucher] = {}

    async def save(self, voucher: Voucher) -> Voucher:
        """Stage voucher; version is checked on commit"""
        self._staged[voucher.voucher_id] = voucher.model_copy(deep=True)
        return voucher

    async def find_by_id(self, voucher_id: UUID) -> Optional[Voucher]:
        """Find voucher by ID"""
        if voucher_id in self._staged:
            return self._staged[voucher_id].model_copy(deep=True)
        with self._store.lock:
            voucher = self._store.vouchers.get(voucher_id)
            return voucher.model_copy(deep=True) if voucher else None

    async def find_by_code(self, code: str) -> Optional[Voucher]:
        """Find voucher by code"""
        code = Voucher.normalize_code(code)
        for voucher in self._staged.values():
            if voucher.code == code:
                return voucher.model_copy(deep=True)
        with self._store.lock:
            for voucher in self._store.vouchers.values():
                if voucher.code == code:
                    return voucher.model_copy(deep=True)
        return None

    async def find_active(self, now: datetime) -> List[Voucher]:
        """Find vouchers usable at `now`"""
        with self._store.lock:
            return [
                v.model_copy(deep=True) for v in self._store.vouchers.values()
                if v.status == VoucherStatus.ACTIVE and v.start_date <= now <= v.end_date
            ]

    async def try_redeem(self, redemption: VoucherRedemption) -> RedemptionOutcome:
        """Conditional increment: only succeeds while both limits of the stored voucher have room"""
        with self._store.lock:
            voucher = self._store.vouchers.get(redemption.voucher_id)
            if voucher is None:
                return RedemptionOutcome.VOUCHER_NOT_FOUND

            if voucher.has_reached_usage_limit():
                return RedemptionOutcome.USAGE_LIMIT_REACHED

            if voucher.usage_limit_per_user is not None:
                used_by_user = self._count_active(redemption.voucher_id, redemption.user_id)
                if used_by_user >= voucher.usage_limit_per_user:
                    return RedemptionOutcome.USER_LIMIT_REACHED

            voucher.used_count += 1
            self._store.redemptions.append(redemption.model_copy(deep=True))
            logger.info(
                f"Voucher {voucher.code} redeemed for booking {redemption.booking_id} "
                f"({voucher.used_count}/{voucher.usage_limit if voucher.usage_limit is not None else 'unlimited'})"
            )
            return RedemptionOutcome.REDEEMED

    async def release_redemption(self, booking_id: UUID) -> Optional[VoucherRedemption]:
        with self._store.lock:
            for redemption in self._store.redemptions:
                if redemption.booking_id == booking_id and redemption.is_active:
                    redemption.release()
                    voucher = self._store.vouchers.get(redemption.voucher_id)
                    if voucher is not None:
                        voucher.decrement_usage_count()
                    logger.info(f"Released voucher redemption of booking {booking_id}")
                    return redemption.model_copy(deep=True)
        return None

    async def find_redemptions(self, voucher_id: UUID) -> List[VoucherRedemption]:
        with self._store.lock:
            return [r.model_copy(deep=True) for r in self._store.redemptions if r.voucher_id == voucher_id]

    async def count_user_redemptions(self, voucher_id: UUID, user_id: UUID) -> int:
        with self._store.lock:
            return self._count_active(voucher_id, user_id)

    def _count_active(self, voucher_id: UUID, user_id: UUID) -> int:
        return sum(
            1 for r in self._store.redemptions
            if r.voucher_id == voucher_id and r.user_id == user_id and r.is_active
        )

    def _check_versions(self) -> None:
        for voucher_id, voucher in self._staged.items():
            current = self._store.vouchers.get(voucher_id)
            if current is not None and current.version != voucher.version:
                raise ConcurrencyConflictError("Voucher", voucher_id, voucher.version, current.version)

    def _publish(self) -> None:
        for voucher_id, voucher in self._staged.items():
            current = self._store.vouchers.get(voucher_id)
            if current is None:
                self._store.vouchers[voucher_id] = voucher
            else:
                # used_count belongs to the redemption ledger, never to a staged copy
                self._store.vouchers[voucher_id] = voucher.model_copy(
                    update={"used_count": current.used_count, "version": current.version + 1}
                )
        self._staged = {}


class InMemoryUnitOfWork(UnitOfWork):
    """Unit of Work over an InMemoryStore; nothing is visible until commit"""

    def __init__(self, store: InMemoryStore):
        self._store = store
        self.bookings = InMemoryBookingRepository(store)
        self.payments = InMemoryPaymentRepository(store)
        self.vouchers = InMemoryVoucherRepository(store)

    async def commit(self) -> None:
        with self._store.lock:
            self.vouchers._check_versions()
            self.bookings._publish()
            self.payments._publish()
            self.vouchers._publish()

    async def rollback(self) -> None:
        self.bookings._staged = {}
        self.payments._staged = {}
        self.vouchers._staged = {}


class InMemoryPropertyCatalog(PropertyCatalog):
    """Property -> partner lookup backed by a dictionary"""

    def __init__(self, owners: Optional[Dict[UUID, UUID]] = None):
        self._owners: Dict[UUID, UUID] = dict(owners or {})

    def register(self, property_id: UUID, partner_id: UUID) -> None:
        self._owners[property_id] = partner_id

    async def get_partner_id(self, property_id: UUID) -> Optional[UUID]:
        return self._owners.get(property_id)
