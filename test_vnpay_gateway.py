"""
Unit Testing for the VNPay gateway adapter
"""

import json
import pytest
import httpx
from datetime import datetime, timezone
from decimal import Decimal
from urllib.parse import urlsplit, parse_qsl
from uuid import uuid4

from infrastructure.config import Settings
from infrastructure.payment.vnpay_gateway import VNPayGateway, hmac_sha512, to_vnpay_amount


FIXED_NOW = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def settings():
    return Settings(vnpay_tmn_code="TESTSHOP", vnpay_hash_secret="TESTSECRET")


@pytest.fixture
def gateway(settings):
    return VNPayGateway(settings, clock=lambda: FIXED_NOW)


def signed_callback(gateway: VNPayGateway, **overrides):
    params = {
        "vnp_TmnCode": "TESTSHOP",
        "vnp_TxnRef": str(uuid4()),
        "vnp_Amount": "90000",
        "vnp_ResponseCode": "00",
        "vnp_TransactionNo": "tx123",
        "vnp_OrderInfo": "Payment for booking",
    }
    params.update(overrides)
    params["vnp_SecureHash"] = gateway.sign(params)
    return params


def gateway_with_transport(settings, handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return VNPayGateway(settings, http_client=client, clock=lambda: FIXED_NOW)


# ============================================================================
# PAYMENT URL
# ============================================================================

class TestPaymentUrl:
    """Test redirect URL generation"""

    @pytest.mark.unit
    @pytest.mark.infrastructure
    def test_amount_conversion(self):
        assert to_vnpay_amount(Decimal("900.00")) == "90000"
        assert to_vnpay_amount(Decimal("12.345")) == "1234"

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.asyncio
    async def test_url_contains_signed_parameters(self, gateway, settings):
        payment_id = uuid4()

        result = await gateway.create_payment_url(
            payment_id, Decimal("900"), "Payment for booking 1", "https://shop.example.com/return"
        )

        url = urlsplit(result.value)
        assert f"{url.scheme}://{url.netloc}{url.path}" == settings.vnpay_payment_url
        params = dict(parse_qsl(url.query))
        assert params["vnp_TxnRef"] == str(payment_id)
        assert params["vnp_Amount"] == "90000"
        assert params["vnp_Command"] == "pay"
        assert params["vnp_TmnCode"] == "TESTSHOP"
        assert params["vnp_ReturnUrl"] == "https://shop.example.com/return"
        assert params["vnp_CreateDate"] == "20260102100405"

        secure_hash = params.pop("vnp_SecureHash")
        assert secure_hash == gateway.sign(params)

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.edge_case
    @pytest.mark.asyncio
    async def test_clock_failure_reported(self, settings):
        def broken_clock():
            raise RuntimeError("clock unavailable")

        gateway = VNPayGateway(settings, clock=broken_clock)
        result = await gateway.create_payment_url(uuid4(), Decimal("1"), "x", "https://r")
        assert result.error.code == "Payment.UrlGenerationFailed"


# ============================================================================
# CALLBACK VERIFICATION
# ============================================================================

class TestCallbackVerification:
    """Test signature and outcome parsing of gateway callbacks"""

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.asyncio
    async def test_successful_callback(self, gateway):
        payload = signed_callback(gateway)

        result = await gateway.verify_callback(payload)

        callback = result.value
        assert callback.success
        assert callback.order_id == payload["vnp_TxnRef"]
        assert callback.transaction_id == "tx123"
        assert callback.amount == Decimal("900")
        assert callback.message == "Payment successful"

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.asyncio
    async def test_uppercase_hash_accepted(self, gateway):
        payload = signed_callback(gateway)
        payload["vnp_SecureHash"] = payload["vnp_SecureHash"].upper()
        payload["vnp_SecureHashType"] = "HmacSHA512"
        assert (await gateway.verify_callback(payload)).is_success

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.asyncio
    async def test_non_vnpay_parameters_ignored(self, gateway):
        payload = signed_callback(gateway)
        payload["utm_source"] = "newsletter"
        assert (await gateway.verify_callback(payload)).is_success

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.asyncio
    async def test_cancelled_by_customer(self, gateway):
        result = await gateway.verify_callback(signed_callback(gateway, vnp_ResponseCode="24"))
        assert not result.value.success
        assert result.value.message == "Transaction cancelled"

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.asyncio
    async def test_unknown_response_code(self, gateway):
        result = await gateway.verify_callback(signed_callback(gateway, vnp_ResponseCode="99"))
        assert result.value.message == "Payment failed with code 99"

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.security
    @pytest.mark.asyncio
    async def test_missing_hash(self, gateway):
        payload = signed_callback(gateway)
        del payload["vnp_SecureHash"]
        result = await gateway.verify_callback(payload)
        assert result.error.code == "Payment.InvalidCallback"

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.security
    @pytest.mark.asyncio
    async def test_tampered_amount(self, gateway):
        payload = signed_callback(gateway)
        payload["vnp_Amount"] = "100"
        result = await gateway.verify_callback(payload)
        assert result.error.code == "Payment.InvalidSignature"

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.security
    @pytest.mark.asyncio
    async def test_signed_with_other_secret(self, gateway):
        payload = signed_callback(VNPayGateway(Settings(vnpay_hash_secret="OTHER")))
        result = await gateway.verify_callback(payload)
        assert result.error.code == "Payment.InvalidSignature"

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.security
    @pytest.mark.edge_case
    @pytest.mark.asyncio
    async def test_non_ascii_hash_rejected_as_invalid_signature(self, gateway):
        payload = signed_callback(gateway)
        payload["vnp_SecureHash"] = "é" + payload["vnp_SecureHash"][1:]
        result = await gateway.verify_callback(payload)
        assert result.error.code == "Payment.InvalidSignature"

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.edge_case
    @pytest.mark.asyncio
    async def test_invalid_amount(self, gateway):
        result = await gateway.verify_callback(signed_callback(gateway, vnp_Amount="12.5x"))
        assert result.error.code == "Payment.InvalidCallbackAmount"


# ============================================================================
# REFUNDS
# ============================================================================

class TestRefund:
    """Test the merchant refund API call"""

    @pytest.mark.unit
    @pytest.mark.infrastructure
    def test_refund_request_signature(self, gateway, settings):
        request = gateway.build_refund_request("tx123", Decimal("900"), "Customer request", "order-1")

        assert request["vnp_Command"] == "refund"
        assert request["vnp_TransactionType"] == "02"
        assert request["vnp_TxnRef"] == "order-1"
        assert request["vnp_Amount"] == "90000"
        assert request["vnp_CreateDate"] == "20260102100405"
        data = "|".join([
            request["vnp_RequestId"], settings.vnpay_version, "refund", "TESTSHOP", "02", "order-1",
            "90000", "tx123", "20260102100405", "system", "20260102100405", "127.0.0.1",
            "Customer request",
        ])
        assert request["vnp_SecureHash"] == hmac_sha512("TESTSECRET", data)

    @pytest.mark.unit
    @pytest.mark.infrastructure
    def test_refund_reference_defaults_to_transaction(self, gateway):
        request = gateway.build_refund_request("tx123", Decimal("1"), "r")
        assert request["vnp_TxnRef"] == "tx123"

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.asyncio
    async def test_refund_accepted(self, settings):
        sent = {}

        def handler(request: httpx.Request) -> httpx.Response:
            sent["url"] = str(request.url)
            sent["body"] = json.loads(request.content)
            return httpx.Response(200, json={"vnp_ResponseCode": "00", "vnp_TransactionNo": "RF987"})

        gateway = gateway_with_transport(settings, handler)
        result = await gateway.process_refund("tx123", Decimal("900"), "Customer request", "order-1")

        assert result.value == "RF987"
        assert sent["url"] == settings.vnpay_refund_url
        assert sent["body"]["vnp_TransactionNo"] == "tx123"
        assert sent["body"]["vnp_Amount"] == "90000"

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.asyncio
    async def test_refund_without_gateway_reference(self, settings):
        gateway = gateway_with_transport(
            settings, lambda request: httpx.Response(200, json={"vnp_ResponseCode": "00"})
        )
        result = await gateway.process_refund("tx123", Decimal("900"), "r")
        assert result.value == "REFUND_tx123_20260102100405"

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.asyncio
    async def test_refund_rejected(self, settings):
        gateway = gateway_with_transport(
            settings,
            lambda request: httpx.Response(200, json={"vnp_ResponseCode": "94", "vnp_Message": "Duplicate request"})
        )
        result = await gateway.process_refund("tx123", Decimal("900"), "r")
        assert result.error.code == "Payment.RefundFailed"
        assert "Duplicate request" in result.error.description

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.edge_case
    @pytest.mark.asyncio
    async def test_refund_transport_error(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = await gateway_with_transport(settings, handler).process_refund("tx123", Decimal("1"), "r")
        assert result.error.code == "Payment.RefundFailed"

    @pytest.mark.unit
    @pytest.mark.infrastructure
    @pytest.mark.edge_case
    @pytest.mark.asyncio
    async def test_refund_server_error(self, settings):
        gateway = gateway_with_transport(settings, lambda request: httpx.Response(503))
        result = await gateway.process_refund("tx123", Decimal("1"), "r")
        assert result.error.code == "Payment.RefundFailed"
