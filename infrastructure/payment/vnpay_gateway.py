"""VNPay payment gateway adapter"""
import hashlib
import hmac
import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Optional
from urllib.parse import urlencode
from uuid import UUID

import httpx

from domain.errors import Result, PaymentErrors
from domain.repositories import PaymentGateway
from domain.value_objects import PaymentCallbackResult
from infrastructure.config import Settings

logger = logging.getLogger(__name__)

VNPAY_TIMEZONE = timezone(timedelta(hours=7))
VNPAY_DATE_FORMAT = "%Y%m%d%H%M%S"
SUCCESS_CODE = "00"
HASH_FIELDS = ("vnp_SecureHash", "vnp_SecureHashType")

RESPONSE_MESSAGES = {
    "00": "Payment successful",
    "07": "Fraud detection triggered",
    "09": "Card/Account not registered for internet banking",
    "10": "Wrong OTP authentication more than 3 times",
    "11": "Payment timeout",
    "12": "Card/Account locked",
    "13": "Wrong OTP authentication password",
    "24": "Transaction cancelled",
    "51": "Insufficient account balance",
    "65": "Daily transaction limit exceeded",
    "75": "Bank under maintenance",
    "79": "Wrong payment password more than allowed times",
}


def response_message(response_code: str) -> str:
    return RESPONSE_MESSAGES.get(response_code, f"Payment failed with code {response_code}")


def hmac_sha512(key: str, data: str) -> str:
    return hmac.new(key.encode("utf-8"), data.encode("utf-8"), hashlib.sha512).hexdigest()


def to_vnpay_amount(amount: Decimal) -> str:
    """VNPay expects the amount multiplied by 100, as an integer string"""
    return str(int(Decimal(amount) * 100))


class VNPayGateway(PaymentGateway):
    """PaymentGateway backed by VNPay's redirect flow and merchant refund API"""

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
        client_ip: str = "127.0.0.1"
    ):
        self.settings = settings
        self._http_client = http_client
        self._clock = clock or (lambda: datetime.now(VNPAY_TIMEZONE))
        self.client_ip = client_ip

    # ==================== SIGNING ====================
    def sign(self, params: Dict[str, str]) -> str:
        """Sign the sorted, query-encoded parameters"""
        query = urlencode(sorted(params.items()))
        return hmac_sha512(self.settings.vnpay_hash_secret, query)

    def _now(self) -> str:
        return self._clock().astimezone(VNPAY_TIMEZONE).strftime(VNPAY_DATE_FORMAT)

    # ==================== PAYMENT URL ====================
    async def create_payment_url(
        self,
        payment_id: UUID,
        amount: Decimal,
        order_info: str,
        return_url: str
    ) -> Result[str]:
        try:
            params = {
                "vnp_Version": self.settings.vnpay_version,
                "vnp_Command": "pay",
                "vnp_TmnCode": self.settings.vnpay_tmn_code,
                "vnp_Amount": to_vnpay_amount(amount),
                "vnp_CurrCode": self.settings.vnpay_currency_code,
                "vnp_TxnRef": str(payment_id),
                "vnp_OrderInfo": order_info,
                "vnp_OrderType": "other",
                "vnp_Locale": self.settings.vnpay_locale,
                "vnp_ReturnUrl": return_url,
                "vnp_CreateDate": self._now(),
                "vnp_IpAddr": self.client_ip,
            }
            query = urlencode(sorted(params.items()))
            secure_hash = self.sign(params)
            payment_url = f"{self.settings.vnpay_payment_url}?{query}&vnp_SecureHash={secure_hash}"

            logger.info(f"Generated VNPay payment URL for order {payment_id}")
            return Result.success(payment_url)
        except Exception:
            logger.exception(f"Error generating VNPay payment URL for order {payment_id}")
            return Result.failure(PaymentErrors.URL_GENERATION_FAILED)

    # ==================== CALLBACK ====================
    async def verify_callback(self, payload: Dict[str, str]) -> Result[PaymentCallbackResult]:
        try:
            secure_hash = payload.get("vnp_SecureHash")
            if not secure_hash:
                logger.warning("Missing vnp_SecureHash in payment callback")
                return Result.failure(PaymentErrors.INVALID_CALLBACK)

            signed = {k: v for k, v in payload.items() if k.startswith("vnp_") and k not in HASH_FIELDS}
            expected = self.sign(signed)
            if not secure_hash.isascii() or not hmac.compare_digest(expected, secure_hash.lower()):
                logger.warning("Invalid secure hash in payment callback")
                return Result.failure(PaymentErrors.INVALID_SIGNATURE)

            response_code = payload.get("vnp_ResponseCode", "")
            raw_amount = payload.get("vnp_Amount", "0")
            try:
                amount = Decimal(int(raw_amount)) / 100
            except (ValueError, InvalidOperation):
                logger.warning(f"Invalid amount in payment callback: {raw_amount}")
                return Result.failure(PaymentErrors.INVALID_CALLBACK_AMOUNT)

            result = PaymentCallbackResult(
                order_id=payload.get("vnp_TxnRef", ""),
                success=response_code == SUCCESS_CODE,
                transaction_id=payload.get("vnp_TransactionNo") or None,
                amount=amount,
                message=response_message(response_code)
            )
            logger.info(f"Verified payment callback for order {result.order_id}: success={result.success}")
            return Result.success(result)
        except Exception:
            logger.exception("Error verifying payment callback")
            return Result.failure(PaymentErrors.VERIFICATION_FAILED)

    # ==================== REFUND ====================
    def build_refund_request(
        self,
        transaction_id: str,
        amount: Decimal,
        reason: str,
        order_id: Optional[str] = None
    ) -> Dict[str, str]:
        """Full-refund request for the merchant API, signed over the pipe-joined fields"""
        now = self._now()
        request = {
            "vnp_RequestId": uuid.uuid4().hex,
            "vnp_Version": self.settings.vnpay_version,
            "vnp_Command": "refund",
            "vnp_TmnCode": self.settings.vnpay_tmn_code,
            "vnp_TransactionType": "02",
            "vnp_TxnRef": order_id or transaction_id,
            "vnp_Amount": to_vnpay_amount(amount),
            "vnp_TransactionNo": transaction_id,
            "vnp_TransactionDate": now,
            "vnp_CreateBy": "system",
            "vnp_CreateDate": now,
            "vnp_IpAddr": self.client_ip,
            "vnp_OrderInfo": reason,
        }
        request["vnp_SecureHash"] = hmac_sha512(
            self.settings.vnpay_hash_secret,
            "|".join(request[field] for field in (
                "vnp_RequestId", "vnp_Version", "vnp_Command", "vnp_TmnCode",
                "vnp_TransactionType", "vnp_TxnRef", "vnp_Amount", "vnp_TransactionNo",
                "vnp_TransactionDate", "vnp_CreateBy", "vnp_CreateDate", "vnp_IpAddr",
                "vnp_OrderInfo",
            ))
        )
        return request

    async def process_refund(
        self,
        transaction_id: str,
        amount: Decimal,
        reason: str,
        order_id: Optional[str] = None
    ) -> Result[str]:
        logger.info(f"Processing refund for transaction {transaction_id}, amount {amount}")
        try:
            request = self.build_refund_request(transaction_id, amount, reason, order_id)
            if self._http_client is not None:
                response = await self._http_client.post(self.settings.vnpay_refund_url, json=request)
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.post(self.settings.vnpay_refund_url, json=request)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.exception(f"Error processing refund for transaction {transaction_id}")
            return Result.failure(PaymentErrors.refund_failed(str(e)))

        response_code = body.get("vnp_ResponseCode", "")
        if response_code != SUCCESS_CODE:
            message = body.get("vnp_Message") or response_message(response_code)
            logger.error(f"VNPay rejected refund for transaction {transaction_id}: {response_code} {message}")
            return Result.failure(PaymentErrors.refund_failed(message))

        refund_transaction_id = body.get("vnp_TransactionNo") or f"REFUND_{transaction_id}_{self._now()}"
        logger.info(f"Refund processed successfully: {refund_transaction_id}")
        return Result.success(refund_transaction_id)
