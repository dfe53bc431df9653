"""Domain Errors and Result type"""
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class ErrorType(str, Enum):
    FAILURE = "FAILURE"
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"


class DomainError(BaseModel):
    """Typed business error carried by a failed Result"""
    code: str
    description: str
    type: ErrorType

    model_config = ConfigDict(frozen=True)


class ConcurrencyConflictError(Exception):
    """Raised by a repository when an entity was saved with a stale version"""

    def __init__(self, entity: str, identifier, expected_version: int, actual_version: int):
        self.entity = entity
        self.identifier = identifier
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"{entity} '{identifier}' was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class Result(Generic[T]):
    """Either a value or one-or-more DomainErrors"""

    __slots__ = ("_value", "_errors")

    def __init__(self, value: Optional[T] = None, errors: Optional[List[DomainError]] = None):
        self._value = value
        self._errors = list(errors or [])

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, *errors: DomainError) -> "Result[T]":
        if not errors:
            raise ValueError("A failed result needs at least one error")
        return cls(errors=list(errors))

    @property
    def is_success(self) -> bool:
        return not self._errors

    @property
    def is_failure(self) -> bool:
        return bool(self._errors)

    @property
    def value(self) -> T:
        if self._errors:
            raise ValueError("The value of a failed result cannot be accessed")
        return self._value

    @property
    def errors(self) -> List[DomainError]:
        return list(self._errors)

    @property
    def error(self) -> Optional[DomainError]:
        """First error, or None on success"""
        return self._errors[0] if self._errors else None

    def __repr__(self) -> str:
        if self.is_success:
            return f"Result.success({self._value!r})"
        return f"Result.failure({', '.join(e.code for e in self._errors)})"


# ============================================================================
# ERROR CATALOG
# ============================================================================

class BookingErrors:
    NOT_FOUND = DomainError(
        code="Booking.NotFound",
        description="The booking was not found.",
        type=ErrorType.NOT_FOUND,
    )
    INVALID_CHECK_IN_DATE = DomainError(
        code="Booking.InvalidCheckInDate",
        description="Check-in date cannot be in the past.",
        type=ErrorType.VALIDATION,
    )
    INVALID_CHECK_OUT_DATE = DomainError(
        code="Booking.InvalidCheckOutDate",
        description="Check-out date must be after check-in date.",
        type=ErrorType.VALIDATION,
    )
    INVALID_GUEST_COUNT = DomainError(
        code="Booking.InvalidGuestCount",
        description="Number of guests must be greater than zero.",
        type=ErrorType.VALIDATION,
    )
    INVALID_TOTAL_PRICE = DomainError(
        code="Booking.InvalidTotalPrice",
        description="Total price cannot be negative.",
        type=ErrorType.VALIDATION,
    )
    INVALID_ROOM_QUANTITY = DomainError(
        code="Booking.InvalidRoomQuantity",
        description="Room quantity must be greater than zero.",
        type=ErrorType.VALIDATION,
    )
    INVALID_NIGHTS = DomainError(
        code="Booking.InvalidNights",
        description="Number of nights must be greater than zero.",
        type=ErrorType.VALIDATION,
    )
    INVALID_PRICE_PER_NIGHT = DomainError(
        code="Booking.InvalidPricePerNight",
        description="Price per night cannot be negative.",
        type=ErrorType.VALIDATION,
    )
    INVALID_DISCOUNT_AMOUNT = DomainError(
        code="Booking.InvalidDiscountAmount",
        description="Discount must be between zero and the line item's gross amount.",
        type=ErrorType.VALIDATION,
    )
    NO_BOOKING_DETAILS = DomainError(
        code="Booking.NoBookingDetails",
        description="A booking needs at least one room type line item.",
        type=ErrorType.VALIDATION,
    )
    NO_ELIGIBLE_DETAILS = DomainError(
        code="Booking.NoEligibleDetails",
        description="No line item of this booking is eligible for the discount.",
        type=ErrorType.VALIDATION,
    )
    NOT_PENDING_FOR_PAYMENT = DomainError(
        code="Booking.NotPendingForPayment",
        description="Only pending bookings can be paid.",
        type=ErrorType.CONFLICT,
    )
    UNAUTHORIZED = DomainError(
        code="Booking.Unauthorized",
        description="You are not allowed to access this booking.",
        type=ErrorType.FORBIDDEN,
    )

    @staticmethod
    def invalid_status_transition(current, target) -> DomainError:
        return DomainError(
            code="Booking.InvalidStatusTransition",
            description=f"Cannot move booking from {current.value} to {target.value}.",
            type=ErrorType.CONFLICT,
        )


class PaymentErrors:
    NOT_FOUND = DomainError(
        code="Payment.NotFound",
        description="The payment was not found.",
        type=ErrorType.NOT_FOUND,
    )
    INVALID_AMOUNT = DomainError(
        code="Payment.InvalidAmount",
        description="Payment amount must be greater than zero.",
        type=ErrorType.VALIDATION,
    )
    INVALID_TRANSACTION_ID = DomainError(
        code="Payment.InvalidTransactionId",
        description="A gateway transaction id is required.",
        type=ErrorType.VALIDATION,
    )
    MISSING_TRANSACTION_ID = DomainError(
        code="Payment.MissingTransactionId",
        description="The payment has no gateway transaction id to refund.",
        type=ErrorType.NOT_FOUND,
    )
    INVALID_PAYMENT_ID = DomainError(
        code="Payment.InvalidPaymentId",
        description="Invalid payment id in callback data.",
        type=ErrorType.VALIDATION,
    )
    AMOUNT_MISMATCH = DomainError(
        code="Payment.AmountMismatch",
        description="The amount reported by the gateway does not match the payment.",
        type=ErrorType.VALIDATION,
    )
    ALREADY_IN_PROGRESS = DomainError(
        code="Payment.AlreadyInProgress",
        description="Another payment for this booking is still in progress.",
        type=ErrorType.CONFLICT,
    )
    INVALID_CALLBACK = DomainError(
        code="Payment.InvalidCallback",
        description="Missing secure hash in payment callback.",
        type=ErrorType.VALIDATION,
    )
    INVALID_SIGNATURE = DomainError(
        code="Payment.InvalidSignature",
        description="Invalid payment signature.",
        type=ErrorType.VALIDATION,
    )
    INVALID_CALLBACK_AMOUNT = DomainError(
        code="Payment.InvalidCallbackAmount",
        description="Invalid amount in payment callback.",
        type=ErrorType.VALIDATION,
    )
    URL_GENERATION_FAILED = DomainError(
        code="Payment.UrlGenerationFailed",
        description="Failed to generate payment URL.",
        type=ErrorType.FAILURE,
    )
    VERIFICATION_FAILED = DomainError(
        code="Payment.VerificationFailed",
        description="Failed to verify payment callback.",
        type=ErrorType.FAILURE,
    )

    @staticmethod
    def invalid_status_transition(current, target) -> DomainError:
        return DomainError(
            code="Payment.InvalidStatusTransition",
            description=f"Cannot move payment from {current.value} to {target.value}.",
            type=ErrorType.CONFLICT,
        )

    @staticmethod
    def refund_failed(message: str) -> DomainError:
        return DomainError(
            code="Payment.RefundFailed",
            description=f"Failed to process refund: {message}",
            type=ErrorType.FAILURE,
        )


class VoucherErrors:
    NOT_FOUND = DomainError(
        code="Voucher.NotFound",
        description="The voucher was not found.",
        type=ErrorType.NOT_FOUND,
    )
    INVALID_CODE = DomainError(
        code="Voucher.InvalidCode",
        description="Voucher code is required.",
        type=ErrorType.VALIDATION,
    )
    DUPLICATE_CODE = DomainError(
        code="Voucher.DuplicateCode",
        description="A voucher with this code already exists.",
        type=ErrorType.CONFLICT,
    )
    INVALID_DISCOUNT = DomainError(
        code="Voucher.InvalidDiscount",
        description="Discount value must be positive, and at most 100 for percentage vouchers.",
        type=ErrorType.VALIDATION,
    )
    INVALID_DATE_RANGE = DomainError(
        code="Voucher.InvalidDateRange",
        description="End date must be after start date.",
        type=ErrorType.VALIDATION,
    )
    INVALID_USAGE_LIMIT = DomainError(
        code="Voucher.InvalidUsageLimit",
        description="Usage limit must be non-negative and not below the current usage.",
        type=ErrorType.VALIDATION,
    )
    INVALID_USAGE_LIMIT_PER_USER = DomainError(
        code="Voucher.InvalidUsageLimitPerUser",
        description="Usage limit per user must be non-negative.",
        type=ErrorType.VALIDATION,
    )
    INVALID_MINIMUM_ORDER_AMOUNT = DomainError(
        code="Voucher.InvalidMinimumOrderAmount",
        description="Minimum order amount must be non-negative.",
        type=ErrorType.VALIDATION,
    )
    INVALID_MAXIMUM_DISCOUNT_AMOUNT = DomainError(
        code="Voucher.InvalidMaximumDiscountAmount",
        description="Maximum discount amount must be positive.",
        type=ErrorType.VALIDATION,
    )
    INVALID_TARGET = DomainError(
        code="Voucher.InvalidTarget",
        description="Voucher target must populate exactly the identifier matching its type.",
        type=ErrorType.VALIDATION,
    )
    TARGET_NOT_FOUND = DomainError(
        code="Voucher.TargetNotFound",
        description="The specified target was not found.",
        type=ErrorType.NOT_FOUND,
    )
    DISABLED = DomainError(
        code="Voucher.Disabled",
        description="This voucher has been disabled.",
        type=ErrorType.VALIDATION,
    )
    NOT_STARTED = DomainError(
        code="Voucher.NotStarted",
        description="This voucher is not yet valid.",
        type=ErrorType.VALIDATION,
    )
    EXPIRED = DomainError(
        code="Voucher.Expired",
        description="This voucher has expired.",
        type=ErrorType.VALIDATION,
    )
    USAGE_LIMIT_REACHED = DomainError(
        code="Voucher.UsageLimitReached",
        description="This voucher has reached its usage limit.",
        type=ErrorType.VALIDATION,
    )
    USER_LIMIT_REACHED = DomainError(
        code="Voucher.UserLimitReached",
        description="You have already used this voucher the maximum number of times.",
        type=ErrorType.VALIDATION,
    )
    NOT_APPLICABLE = DomainError(
        code="Voucher.NotApplicable",
        description="This voucher is not applicable to the selected items.",
        type=ErrorType.VALIDATION,
    )
    UNAUTHORIZED_GLOBAL_CREATION = DomainError(
        code="Voucher.UnauthorizedGlobalCreation",
        description="Only administrators can create global vouchers.",
        type=ErrorType.FORBIDDEN,
    )
    NOT_OWNER = DomainError(
        code="Voucher.NotOwner",
        description="Only the creator or an administrator can manage this voucher.",
        type=ErrorType.FORBIDDEN,
    )
    CONCURRENCY_CONFLICT = DomainError(
        code="Voucher.ConcurrencyConflict",
        description="The voucher was modified by another request. Reload and retry.",
        type=ErrorType.CONFLICT,
    )

    @staticmethod
    def minimum_order_amount_not_met(minimum) -> DomainError:
        return DomainError(
            code="Voucher.MinimumOrderAmountNotMet",
            description=f"Order amount must be at least {minimum}.",
            type=ErrorType.VALIDATION,
        )
