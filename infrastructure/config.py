"""Application settings read from the environment"""
import os
from functools import lru_cache

from pydantic import BaseModel


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Runtime configuration. Defaults are for local development only."""

    # Auth
    secret_key: str = "your-secret-key-keep-it-secret"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # VNPay merchant account (sandbox defaults)
    vnpay_tmn_code: str = "DEMOTMN1"
    vnpay_hash_secret: str = "DEMOHASHSECRET"
    vnpay_payment_url: str = "https://sandbox.vnpayment.vn/paymentv2/vpcpay.html"
    vnpay_refund_url: str = "https://sandbox.vnpayment.vn/merchant_webapi/api/transaction"
    vnpay_version: str = "2.1.0"
    vnpay_currency_code: str = "VND"
    vnpay_locale: str = "vn"

    # Vouchers
    voucher_release_on_cancel: bool = False

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            secret_key=os.environ.get("SECRET_KEY", defaults.secret_key),
            jwt_algorithm=os.environ.get("JWT_ALGORITHM", defaults.jwt_algorithm),
            access_token_expire_minutes=int(
                os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", defaults.access_token_expire_minutes)
            ),
            vnpay_tmn_code=os.environ.get("VNPAY_TMN_CODE", defaults.vnpay_tmn_code),
            vnpay_hash_secret=os.environ.get("VNPAY_HASH_SECRET", defaults.vnpay_hash_secret),
            vnpay_payment_url=os.environ.get("VNPAY_PAYMENT_URL", defaults.vnpay_payment_url),
            vnpay_refund_url=os.environ.get("VNPAY_REFUND_URL", defaults.vnpay_refund_url),
            vnpay_version=os.environ.get("VNPAY_VERSION", defaults.vnpay_version),
            vnpay_currency_code=os.environ.get("VNPAY_CURRENCY_CODE", defaults.vnpay_currency_code),
            vnpay_locale=os.environ.get("VNPAY_LOCALE", defaults.vnpay_locale),
            voucher_release_on_cancel=_env_bool(
                "VOUCHER_RELEASE_ON_CANCEL", defaults.voucher_release_on_cancel
            ),
            log_level=os.environ.get("LOG_LEVEL", defaults.log_level),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
