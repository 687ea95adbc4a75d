"""
Tests for the Razorpay REST client and signature helpers.
"""

import hashlib
import hmac

import pytest
import requests
from unittest.mock import MagicMock, patch

from app.config.payment_config import PAYMENT_CONFIG
from app.core.exceptions import PaymentGatewayError
from app.services.payment_providers.razorpay_service import (
    RazorpayService,
    generate_signature,
    verify_signature,
)


def make_response(status_code, body):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    return response


@pytest.fixture
def client():
    return RazorpayService("rzp_test_key", "rzp_test_secret", base_url="https://api.razorpay.com/v1/", timeout=5)


class TestRazorpayRequests:
    """Test calls to the Razorpay API."""

    @pytest.mark.asyncio
    async def test_create_order(self, client):
        body = {"id": "order_RZP001", "amount": 39500, "currency": "INR", "receipt": "order_1"}
        with patch("app.services.payment_providers.razorpay_service.requests.post",
                   return_value=make_response(200, body)) as mock_post:
            result = await client.create_order(39500, "INR", "order_1", notes={"order_id": "1"})

        assert result == body
        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.razorpay.com/v1/orders"
        assert kwargs["auth"] == ("rzp_test_key", "rzp_test_secret")
        assert kwargs["json"] == {
            "amount": 39500,
            "currency": "INR",
            "receipt": "order_1",
            "notes": {"order_id": "1"}
        }
        assert kwargs["timeout"] == 5

    @pytest.mark.asyncio
    async def test_refund_payment(self, client):
        body = {"id": "rfnd_001", "amount": 50000, "status": "processed"}
        with patch("app.services.payment_providers.razorpay_service.requests.post",
                   return_value=make_response(200, body)) as mock_post:
            result = await client.refund_payment("pay_001", 50000, notes={"reason": "Damaged"})

        assert result["id"] == "rfnd_001"
        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.razorpay.com/v1/payments/pay_001/refund"
        assert kwargs["json"]["amount"] == 50000
        assert kwargs["json"]["speed"] == "normal"

    @pytest.mark.asyncio
    async def test_error_response(self, client):
        body = {"error": {"code": "BAD_REQUEST_ERROR", "description": "The amount must be atleast INR 1.00"}}
        with patch("app.services.payment_providers.razorpay_service.requests.post",
                   return_value=make_response(400, body)):
            with pytest.raises(PaymentGatewayError) as exc_info:
                await client.create_order(0, "INR", "order_1")

        assert exc_info.value.message == "The amount must be atleast INR 1.00"
        assert exc_info.value.gateway_status_code == 400

    @pytest.mark.asyncio
    async def test_error_response_without_json(self, client):
        response = make_response(502, None)
        response.json.side_effect = ValueError("no json")
        with patch("app.services.payment_providers.razorpay_service.requests.post", return_value=response):
            with pytest.raises(PaymentGatewayError) as exc_info:
                await client.create_order(100, "INR", "order_1")

        assert "502" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_network_error(self, client):
        with patch("app.services.payment_providers.razorpay_service.requests.post",
                   side_effect=requests.exceptions.ConnectionError("connection refused")):
            with pytest.raises(PaymentGatewayError) as exc_info:
                await client.refund_payment("pay_001", 100)

        assert "connection refused" in exc_info.value.message


class TestFromConfig:
    """Test building the client from configuration."""

    def test_disabled_without_keys(self):
        with patch.dict(PAYMENT_CONFIG["razorpay"], {"key_id": "", "key_secret": ""}):
            assert RazorpayService.from_config() is None

    def test_built_from_keys(self):
        with patch.dict(PAYMENT_CONFIG["razorpay"], {"key_id": "rzp_test_key", "key_secret": "secret"}):
            client = RazorpayService.from_config()

        assert client is not None
        assert client.key_id == "rzp_test_key"
        assert client.base_url == PAYMENT_CONFIG["razorpay"]["api_url"].rstrip("/")


class TestSignatures:
    """Test HMAC-SHA256 signature helpers."""

    def test_generate_signature_matches_hmac(self):
        expected = hmac.new(b"secret", b"order_1|pay_1", hashlib.sha256).hexdigest()
        assert generate_signature("order_1|pay_1", "secret") == expected

    def test_bytes_and_str_messages_agree(self):
        assert generate_signature(b'{"event":"x"}', "secret") == generate_signature('{"event":"x"}', "secret")

    def test_verify_valid(self):
        signature = generate_signature("order_1|pay_1", "secret")
        assert verify_signature("order_1|pay_1", signature, "secret") is True

    def test_verify_wrong_secret(self):
        signature = generate_signature("order_1|pay_1", "other")
        assert verify_signature("order_1|pay_1", signature, "secret") is False

    def test_verify_swapped_ids(self):
        signature = generate_signature("pay_1|order_1", "secret")
        assert verify_signature("order_1|pay_1", signature, "secret") is False

    def test_verify_empty_signature(self):
        assert verify_signature("order_1|pay_1", "", "secret") is False
        assert verify_signature("order_1|pay_1", None, "secret") is False

    def test_verify_without_secret(self):
        signature = generate_signature("order_1|pay_1", "")
        assert verify_signature("order_1|pay_1", signature, "") is False

    def test_verify_non_ascii_signature(self):
        assert verify_signature("order_1|pay_1", "sïgnature", "secret") is False
