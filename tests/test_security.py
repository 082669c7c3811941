from __future__ import annotations

from security import decrypt_sensitive_value, encrypt_sensitive_value, hash_password, verify_password


def test_password_hash_round_trip():
    stored = hash_password("snow-pass-42")
    assert stored.startswith("$2")
    assert verify_password("snow-pass-42", stored)
    assert not verify_password("wrong", stored)


def test_each_hash_is_salted():
    assert hash_password("same") != hash_password("same")


def test_contacts_are_stored_encrypted():
    token = encrypt_sensitive_value("+7 900 000-00-00")
    assert token != "+7 900 000-00-00"
    assert decrypt_sensitive_value(token) == "+7 900 000-00-00"


def test_empty_contacts_survive_encryption():
    assert decrypt_sensitive_value(encrypt_sensitive_value("")) == ""
