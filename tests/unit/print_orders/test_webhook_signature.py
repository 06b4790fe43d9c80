"""Unit tests for webhook signature verification.

Covers:
- Signatures are computed over the exact raw bytes received.
- A re-serialized body with the same JSON content does not verify.
- Missing secret fails closed; missing or wrong signature is rejected.
"""

from __future__ import annotations

import hashlib
import hmac
import json

import pytest

from modules.print_orders.exceptions import (
    WebhookConfigurationError,
    WebhookSignatureError,
)
from modules.print_orders.webhooks import compute_signature, verify_signature

pytestmark = pytest.mark.unit

SECRET = "shared-secret"
RAW_BODY = b'{"event": "order.shipped",  "orderId": "abc",\n "data": {}}'


class TestComputeSignature:
    def test_hex_hmac_sha256_of_raw_body(self):
        expected = hmac.new(SECRET.encode(), RAW_BODY, hashlib.sha256).hexdigest()
        assert compute_signature(SECRET, RAW_BODY) == expected


class TestVerifySignature:
    def test_valid_signature_passes(self):
        verify_signature(SECRET, RAW_BODY, compute_signature(SECRET, RAW_BODY))

    def test_uppercase_hex_is_accepted(self):
        signature = compute_signature(SECRET, RAW_BODY).upper()
        verify_signature(SECRET, RAW_BODY, signature)

    def test_reserialized_body_does_not_verify(self):
        signature = compute_signature(SECRET, RAW_BODY)
        reserialized = json.dumps(json.loads(RAW_BODY)).encode()

        assert reserialized != RAW_BODY
        with pytest.raises(WebhookSignatureError):
            verify_signature(SECRET, reserialized, signature)

    def test_wrong_secret_is_rejected(self):
        signature = compute_signature("other-secret", RAW_BODY)
        with pytest.raises(WebhookSignatureError):
            verify_signature(SECRET, RAW_BODY, signature)

    @pytest.mark.parametrize("signature", [None, ""])
    def test_missing_signature_is_rejected(self, signature):
        with pytest.raises(WebhookSignatureError):
            verify_signature(SECRET, RAW_BODY, signature)

    def test_missing_secret_fails_closed(self):
        signature = compute_signature("", RAW_BODY)
        with pytest.raises(WebhookConfigurationError):
            verify_signature("", RAW_BODY, signature)
