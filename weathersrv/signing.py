"""Request signatures and AES-CBC payload encryption."""

import base64
import hashlib
import hmac

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

BLOCK_SIZE = 16


def _to_bytes(value):
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def encrypt_data(data, key):
    """Base64 HMAC-SHA256 of data under key."""
    digest = hmac.new(_to_bytes(key), _to_bytes(data), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def pkcs5_padding(data):
    """Pad data to a whole number of AES blocks."""
    data = _to_bytes(data)
    padding = BLOCK_SIZE - len(data) % BLOCK_SIZE
    return data + bytes([padding]) * padding


def compress_key_data(plaintext, key, iv):
    """Encrypt plaintext with AES-CBC and return it base64 encoded."""
    key_bytes = _to_bytes(key)
    iv_bytes = _to_bytes(iv)
    if len(key_bytes) not in (16, 24, 32):
        raise ValueError(f"invalid AES key size {len(key_bytes)}")
    if len(iv_bytes) != BLOCK_SIZE:
        raise ValueError(f"IV must be {BLOCK_SIZE} bytes")
    encryptor = Cipher(algorithms.AES(key_bytes), modes.CBC(iv_bytes)).encryptor()
    ciphertext = encryptor.update(pkcs5_padding(plaintext)) + encryptor.finalize()
    return base64.b64encode(ciphertext).decode("ascii")