"""Passphrase-based symmetric encryption for archives.

Layout of the ciphertext::

    iterations (4 bytes, big endian) | salt (16) | iv (16) | AES-256-CBC body | HMAC-SHA256 (32)

The header makes decryption self-describing: the passphrase is the only
other input. A single PBKDF2-HMAC-SHA256 derivation yields both the AES key
and the HMAC key. The MAC covers header and body and is checked before any
padding is touched.
"""

import os
import struct

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from dotsecrets.errors import DecryptionError

KDF_ITERATIONS = 600_000
MAX_KDF_ITERATIONS = 10_000_000
SALT_SIZE = 16
IV_SIZE = 16
KEY_SIZE = 32
MAC_SIZE = 32
HEADER_FORMAT = ">I"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT) + SALT_SIZE + IV_SIZE


def _derive_keys(passphrase: str, salt: bytes, iterations: int) -> tuple[bytes, bytes]:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE * 2,
        salt=salt,
        iterations=iterations,
    )
    material = kdf.derive(passphrase.encode("utf-8"))
    return material[:KEY_SIZE], material[KEY_SIZE:]


def _mac(key: bytes, data: bytes) -> hmac.HMAC:
    h = hmac.HMAC(key, hashes.SHA256())
    h.update(data)
    return h


def encrypt(plaintext: bytes, passphrase: str, iterations: int = KDF_ITERATIONS) -> bytes:
    """Encrypt ``plaintext`` under a key derived from ``passphrase``.

    A fresh salt and IV are generated on every call.
    """
    salt = os.urandom(SALT_SIZE)
    iv = os.urandom(IV_SIZE)
    enc_key, mac_key = _derive_keys(passphrase, salt, iterations)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = Cipher(algorithms.AES(enc_key), modes.CBC(iv)).encryptor()
    body = encryptor.update(padded) + encryptor.finalize()

    header = struct.pack(HEADER_FORMAT, iterations) + salt + iv
    signed = header + body
    return signed + _mac(mac_key, signed).finalize()


def decrypt(ciphertext: bytes, passphrase: str) -> bytes:
    """Decrypt data produced by encrypt().

    Raises:
        DecryptionError: Wrong passphrase, truncated or tampered data. The
            cause is never distinguished.
    """
    block = algorithms.AES.block_size // 8
    body_size = len(ciphertext) - HEADER_SIZE - MAC_SIZE
    if body_size < block or body_size % block:
        raise DecryptionError()

    (iterations,) = struct.unpack_from(HEADER_FORMAT, ciphertext)
    if not 1 <= iterations <= MAX_KDF_ITERATIONS:
        raise DecryptionError()
    offset = struct.calcsize(HEADER_FORMAT)
    salt = ciphertext[offset : offset + SALT_SIZE]
    iv = ciphertext[offset + SALT_SIZE : HEADER_SIZE]
    signed = ciphertext[:-MAC_SIZE]
    tag = ciphertext[-MAC_SIZE:]

    enc_key, mac_key = _derive_keys(passphrase, salt, iterations)
    try:
        _mac(mac_key, signed).verify(tag)
    except InvalidSignature:
        raise DecryptionError() from None

    decryptor = Cipher(algorithms.AES(enc_key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(signed[HEADER_SIZE:]) + decryptor.finalize()

    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError:
        raise DecryptionError() from None
