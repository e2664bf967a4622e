import pytest

from app.backend.tools.password_hasher import hash_password, verify_password


def test_hash_is_salted_scrypt():
    method, salt, digest = hash_password("admin123").split("$")
    assert method.startswith("scrypt")
    assert salt and digest


def test_same_password_gets_different_salts():
    assert hash_password("admin123") != hash_password("admin123")


def test_verify_roundtrip():
    stored = hash_password("student123")
    assert verify_password("student123", stored)
    assert not verify_password("Student123", stored)


@pytest.mark.parametrize("stored", ["", "no-separators", "x", None])
def test_malformed_hashes_never_verify(stored):
    assert not verify_password("anything", stored)
