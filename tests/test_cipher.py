"""Tests for passphrase-based encryption."""

import pytest

from dotsecrets.core import cipher
from dotsecrets.errors import DecryptionError

ITERATIONS = 1_000


@pytest.mark.parametrize(
    "plaintext",
    [b"", b"KEY-A", b"x" * 15, b"x" * 16, bytes(range(256)) * 40],
)
def test_round_trip(plaintext):
    """Test decrypt(encrypt(x)) returns x."""
    ciphertext = cipher.encrypt(plaintext, "hunter2", iterations=ITERATIONS)
    assert cipher.decrypt(ciphertext, "hunter2") == plaintext


def test_header_carries_salt_and_iv():
    """Two encryptions of the same input never produce the same bytes."""
    first = cipher.encrypt(b"same", "hunter2", iterations=ITERATIONS)
    second = cipher.encrypt(b"same", "hunter2", iterations=ITERATIONS)

    assert first[: cipher.HEADER_SIZE] != second[: cipher.HEADER_SIZE]
    assert first != second


def test_iteration_count_is_self_describing():
    """Test decrypt reads the iteration count from the header."""
    ciphertext = cipher.encrypt(b"data", "pw", iterations=1234)
    assert int.from_bytes(ciphertext[:4], "big") == 1234
    assert cipher.decrypt(ciphertext, "pw") == b"data"


def test_default_iterations_resist_brute_force():
    """Test the default key derivation cost."""
    assert cipher.KDF_ITERATIONS >= 100_000


def test_wrong_passphrase_fails():
    """Test a wrong passphrase raises DecryptionError."""
    ciphertext = cipher.encrypt(b"KEY-A", "hunter2", iterations=ITERATIONS)

    with pytest.raises(DecryptionError):
        cipher.decrypt(ciphertext, "wrong")


@pytest.mark.parametrize(
    "mangle",
    [
        lambda c: c[:-1],
        lambda c: c[:10],
        lambda c: b"",
        lambda c: c[:40] + bytes([c[40] ^ 0x01]) + c[41:],
        lambda c: c[:-1] + bytes([c[-1] ^ 0x80]),
        lambda c: (0).to_bytes(4, "big") + c[4:],
    ],
    ids=["truncated-tag", "header-only", "empty", "flipped-body", "flipped-tag", "zero-iterations"],
)
def test_corruption_reports_same_error_as_wrong_passphrase(mangle):
    """Test tampered ciphertext fails like a wrong passphrase."""
    ciphertext = cipher.encrypt(b"some secret bytes", "hunter2", iterations=ITERATIONS)

    with pytest.raises(DecryptionError) as exc:
        cipher.decrypt(mangle(ciphertext), "hunter2")

    assert str(exc.value) == str(DecryptionError())
