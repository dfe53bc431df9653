"""Domain Repository Interfaces and outbound ports"""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from domain.entities import Booking, Payment, Voucher
from domain.enums import RedemptionOutcome
from domain.errors import Result
from domain.value_objects import VoucherRedemption, PaymentCallbackResult


class BookingRepository(ABC):
    """Repository interface for Booking Aggregate"""

    @abstractmethod
    async def save(self, booking: Booking) -> Booking:
        """Stage booking for the next commit"""
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        pass

    @abstractmethod
    async def find_by_user_id(self, user_id: UUID) -> List[Booking]:
        """Find bookings made by a user"""
        pass


class PaymentRepository(ABC):
    """Repository interface for Payment Aggregate"""

    @abstractmethod
    async def save(self, payment: Payment) -> Payment:
        """Stage payment for the next commit"""
        pass

    @abstractmethod
    async def find_by_id(self, payment_id: UUID) -> Optional[Payment]:
        """Find payment by ID"""
        pass

    @abstractmethod
    async def find_by_booking_id(self, booking_id: UUID) -> List[Payment]:
        """Find all payment attempts of a booking, oldest first"""
        pass


class VoucherRepository(ABC):
    """Repository interface for Voucher Aggregate and its redemption ledger"""

    @abstractmethod
    async def save(self, voucher: Voucher) -> Voucher:
        """Stage voucher for the next commit

        The commit fails with ConcurrencyConflictError when the stored version
        differs from the version the voucher was loaded at.
        """
        pass

    @abstractmethod
    async def find_by_id(self, voucher_id: UUID) -> Optional[Voucher]:
        """Find voucher by ID"""
        pass

    @abstractmethod
    async def find_by_code(self, code: str) -> Optional[Voucher]:
        """Find voucher by code (case-insensitive)"""
        pass

    @abstractmethod
    async def find_active(self, now: datetime) -> List[Voucher]:
        """Find vouchers that are ACTIVE and inside their validity window"""
        pass

    @abstractmethod
    async def try_redeem(self, redemption: VoucherRedemption) -> RedemptionOutcome:
        """Atomically check the stored voucher's limits, bump used_count and record the redemption

        Not staged: the outcome is visible to other units of work immediately.
        """
        pass

    @abstractmethod
    async def release_redemption(self, booking_id: UUID) -> Optional[VoucherRedemption]:
        """Atomically release the active redemption of a booking and give back one use"""
        pass

    @abstractmethod
    async def find_redemptions(self, voucher_id: UUID) -> List[VoucherRedemption]:
        """Find all ledger entries of a voucher"""
        pass

    @abstractmethod
    async def count_user_redemptions(self, voucher_id: UUID, user_id: UUID) -> int:
        """Count active redemptions of a voucher by a user"""
        pass


class UnitOfWork(ABC):
    """Transaction boundary: repositories stage writes, commit publishes them"""

    bookings: BookingRepository
    payments: PaymentRepository
    vouchers: VoucherRepository

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.rollback()

    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        pass


class PaymentGateway(ABC):
    """Outbound port to an external payment gateway"""

    @abstractmethod
    async def create_payment_url(
        self,
        payment_id: UUID,
        amount: Decimal,
        order_info: str,
        return_url: str
    ) -> Result[str]:
        """Build the redirect URL the customer pays at"""
        pass

    @abstractmethod
    async def verify_callback(self, payload: Dict[str, str]) -> Result[PaymentCallbackResult]:
        """Check the callback signature and extract its outcome"""
        pass

    @abstractmethod
    async def process_refund(
        self,
        transaction_id: str,
        amount: Decimal,
        reason: str,
        order_id: Optional[str] = None
    ) -> Result[str]:
        """Refund a captured payment, returning the gateway refund reference"""
        pass


class PropertyCatalog(ABC):
    """Read-only view of the property catalog owned by another context"""

    @abstractmethod
    async def get_partner_id(self, property_id: UUID) -> Optional[UUID]:
        """Partner that owns a property, or None if unknown"""
        pass
