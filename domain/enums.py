"""Domain Enums"""
from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    VNPAY = "VNPAY"
    MOMO = "MOMO"
    CREDIT_CARD = "CREDIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class VoucherStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"
    EXPIRED = "EXPIRED"


class VoucherCreatorType(str, Enum):
    ADMIN = "ADMIN"
    PARTNER = "PARTNER"


class VoucherTargetType(str, Enum):
    GLOBAL = "GLOBAL"
    PARTNER = "PARTNER"
    PROPERTY = "PROPERTY"
    ROOM_TYPE = "ROOM_TYPE"


class RedemptionOutcome(str, Enum):
    """Outcome of an atomic voucher redeem against the usage store"""
    REDEEMED = "REDEEMED"
    USAGE_LIMIT_REACHED = "USAGE_LIMIT_REACHED"
    USER_LIMIT_REACHED = "USER_LIMIT_REACHED"
    VOUCHER_NOT_FOUND = "VOUCHER_NOT_FOUND"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    PARTNER = "PARTNER"
    USER = "USER"
