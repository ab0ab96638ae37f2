import base64

import pytest

from salonbook import webhook_security
from salonbook.security_utils import (
    create_professional_token,
    decode_professional_token,
    decrypt_credential,
    encrypt_credential,
    hash_password,
    mask_secret,
    verify_password,
)
from salonbook.webhook_security import constant_time_compare, verify_webhook_token

OTHER_KEY = base64.b64encode(b"o" * 32).decode()


def test_credential_round_trip():
    sealed = encrypt_credential("ultramsg-token-1234")
    assert "ultramsg" not in sealed
    assert decrypt_credential(sealed) == "ultramsg-token-1234"


def test_each_encryption_uses_a_fresh_iv():
    assert encrypt_credential("same") != encrypt_credential("same")


def test_stored_layout_is_iv_tag_ciphertext():
    payload = base64.b64decode(encrypt_credential("abc"))
    assert len(payload) == 12 + 16 + 3


def test_tampered_credential_is_rejected():
    payload = bytearray(base64.b64decode(encrypt_credential("secret")))
    payload[-1] ^= 0x01
    with pytest.raises(ValueError):
        decrypt_credential(base64.b64encode(bytes(payload)).decode())


def test_wrong_key_is_rejected():
    sealed = encrypt_credential("secret")
    with pytest.raises(ValueError):
        decrypt_credential(sealed, key_base64=OTHER_KEY)


def test_malformed_payload_is_rejected():
    with pytest.raises(ValueError):
        decrypt_credential("not base64!!")
    with pytest.raises(ValueError):
        decrypt_credential(base64.b64encode(b"short").decode())


def test_mask_secret():
    assert mask_secret("abcdef123456") == "****3456"
    assert mask_secret(None) is None


def test_password_hashing():
    hashed = hash_password("segredo1")
    assert hashed != "segredo1"
    assert verify_password("segredo1", hashed)
    assert not verify_password("errada", hashed)
    assert not verify_password("segredo1", None)


def test_professional_token_claims():
    claims = decode_professional_token(create_professional_token(7, 3))
    assert claims["sub"] == "7"
    assert claims["tenant"] == 3
    assert claims["role"] == "professional"


def test_foreign_token_is_not_a_professional_token():
    assert decode_professional_token("a.b.c") is None


def test_webhook_token_comparison():
    assert constant_time_compare("abc", "abc")
    assert not constant_time_compare("abc", "abd")
    assert not constant_time_compare(None, "abc")
    assert verify_webhook_token(None, None)
    assert not verify_webhook_token(None, "expected")


def test_webhook_rejects_missing_token(client, monkeypatch):
    monkeypatch.setattr(webhook_security, "WHATSAPP_WEBHOOK_TOKEN", "shh")

    assert client.post("/webhook/whatsapp", json={}).status_code == 401
    response = client.post("/webhook/whatsapp", json={}, headers={"X-Webhook-Token": "shh"})
    assert response.status_code == 200


def test_security_headers(client):
    response = client.get("/")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "default-src 'none'" in response.headers["Content-Security-Policy"]

    assert "Content-Security-Policy" not in client.get("/health").headers
