"""Signing, verification and hashing helpers for blockchain data."""

from __future__ import annotations

import dataclasses
import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from Crypto.Hash import keccak

ZERO_HASH = "0x0000000000000000000000000000000000000000000000000000000000000000"

ARDAN_ID = 29

SIGNATURE_LENGTH = 65
RECOVERY_ID_OFFSET = 64

_P = 2**256 - 2**32 - 977
_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
_G = (
    0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798,
    0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8,
)

Point = Optional[tuple[int, int]]


class SignatureError(Exception):
    """Raised when signing, verification or key handling fails."""


def _keccak256(*parts: bytes) -> bytes:
    h = keccak.new(digest_bits=256)
    for part in parts:
        h.update(part)
    return h.digest()


def _point_add(a: Point, b: Point) -> Point:
    if a is None:
        return b
    if b is None:
        return a
    if a[0] == b[0]:
        if (a[1] + b[1]) % _P == 0:
            return None
        lam = 3 * a[0] * a[0] * pow(2 * a[1], -1, _P) % _P
    else:
        lam = (b[1] - a[1]) * pow(b[0] - a[0], -1, _P) % _P
    x = (lam * lam - a[0] - b[0]) % _P
    y = (lam * (a[0] - x) - a[1]) % _P
    return x, y


def _point_mul(k: int, point: Point) -> Point:
    result: Point = None
    addend = point
    while k:
        if k & 1:
            result = _point_add(result, addend)
        addend = _point_add(addend, addend)
        k >>= 1
    return result


def _to_json(value: Any) -> bytes:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    for char, escaped in (
        ("&", "\\u0026"),
        ("<", "\\u003c"),
        (">", "\\u003e"),
        ("\u2028", "\\u2028"),
        ("\u2029", "\\u2029"),
    ):
        text = text.replace(char, escaped)
    return text.encode("utf-8")


def _checksum_address(raw: bytes) -> str:
    hex_addr = raw.hex()
    digest = _keccak256(hex_addr.encode("ascii")).hex()
    chars = (
        c.upper() if c.isalpha() and int(digest[i], 16) >= 8 else c
        for i, c in enumerate(hex_addr)
    )
    return "0x" + "".join(chars)


def _public_key_address(public: tuple[int, int]) -> str:
    encoded = public[0].to_bytes(32, "big") + public[1].to_bytes(32, "big")
    return _checksum_address(_keccak256(encoded)[12:])


@dataclass(frozen=True)
class PrivateKey:
    """A secp256k1 private key."""

    secret: int

    @classmethod
    def from_hex(cls, hex_key: str) -> "PrivateKey":
        """Build a key from 64 hex characters."""
        try:
            raw = bytes.fromhex(hex_key)
        except ValueError as err:
            raise SignatureError(f"invalid hex key: {err}") from err
        if len(raw) != 32:
            raise SignatureError("invalid length, need 256 bits")
        scalar = int.from_bytes(raw, byteorder="big")
        if not 0 < scalar < _N:
            raise SignatureError("invalid private key")
        return cls(scalar)

    @property
    def public_key(self) -> tuple[int, int]:
        """The public point for this key."""
        return _point_mul(self.secret, _G)

    def address(self) -> str:
        """The checksummed account address for this key."""
        return _public_key_address(self.public_key)


def hash_value(value: Any) -> str:
    """Return a sha256 hex hash of the JSON form of ``value``."""
    try:
        data = _to_json(value)
    except (TypeError, ValueError):
        return ZERO_HASH
    return "0x" + hashlib.sha256(data).hexdigest()


def _stamp(value: Any) -> bytes:
    try:
        data = _to_json(value)
    except (TypeError, ValueError) as err:
        raise SignatureError(str(err)) from err
    tx_hash = _keccak256(data)
    return _keccak256(b"\x19Ardan Signed Message:\n32", tx_hash)


def _nonces(scalar: int, digest: bytes) -> Iterator[int]:
    x = scalar.to_bytes(32, "big")
    h = (int.from_bytes(digest, "big") % _N).to_bytes(32, "big")
    v = b"\x01" * 32
    k = b"\x00" * 32
    k = hmac.new(k, v + b"\x00" + x + h, hashlib.sha256).digest()
    v = hmac.new(k, v, hashlib.sha256).digest()
    k = hmac.new(k, v + b"\x01" + x + h, hashlib.sha256).digest()
    v = hmac.new(k, v, hashlib.sha256).digest()
    while True:
        v = hmac.new(k, v, hashlib.sha256).digest()
        candidate = int.from_bytes(v, "big")
        if 0 < candidate < _N:
            yield candidate
        k = hmac.new(k, v + b"\x00", hashlib.sha256).digest()
        v = hmac.new(k, v, hashlib.sha256).digest()


def _sign_digest(digest: bytes, scalar: int) -> bytes:
    z = int.from_bytes(digest, "big") % _N
    for nonce in _nonces(scalar, digest):
        point = _point_mul(nonce, _G)
        r = point[0] % _N
        if r == 0:
            continue
        recid = (point[1] & 1) | (2 if point[0] >= _N else 0)
        s = pow(nonce, -1, _N) * (z + r * scalar) % _N
        if s == 0:
            continue
        if s > _N // 2:
            s = _N - s
            recid ^= 1
        return r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([recid])
    raise SignatureError("unable to produce signature")


def _verify_digest(public: tuple[int, int], digest: bytes, r: int, s: int) -> bool:
    if not (0 < r < _N and 0 < s <= _N // 2):
        return False
    z = int.from_bytes(digest, "big") % _N
    w = pow(s, -1, _N)
    point = _point_add(_point_mul(z * w % _N, _G), _point_mul(r * w % _N, public))
    return point is not None and point[0] % _N == r


def _recover(digest: bytes, sig: bytes) -> tuple[int, int]:
    r = int.from_bytes(sig[:32], "big")
    s = int.from_bytes(sig[32:64], "big")
    recid = sig[RECOVERY_ID_OFFSET]
    if recid > 3 or not 0 < r < _N or not 0 < s < _N:
        raise SignatureError("invalid signature")
    x = r + _N if recid & 2 else r
    if x >= _P:
        raise SignatureError("invalid signature")
    alpha = (pow(x, 3, _P) + 7) % _P
    beta = pow(alpha, (_P + 1) // 4, _P)
    if beta * beta % _P != alpha:
        raise SignatureError("invalid signature")
    y = beta if beta & 1 == recid & 1 else _P - beta
    z = int.from_bytes(digest, "big") % _N
    r_inv = pow(r, -1, _N)
    public = _point_add(
        _point_mul(s * r_inv % _N, (x, y)),
        _point_mul(-z * r_inv % _N, _G),
    )
    if public is None:
        raise SignatureError("invalid signature")
    return public


def sign(value: Any, private_key: PrivateKey) -> tuple[int, int, int]:
    """Sign ``value`` and return the (v, r, s) signature values."""
    data = _stamp(value)
    sig = _sign_digest(data, private_key.secret)
    r = int.from_bytes(sig[:32], "big")
    s = int.from_bytes(sig[32:64], "big")
    if not _verify_digest(private_key.public_key, data, r, s):
        raise SignatureError("invalid signature produced")
    v = sig[RECOVERY_ID_OFFSET] + ARDAN_ID
    return v, r, s


def verify_signature(value: Any, v: int, r: int, s: int) -> None:
    """Check that the signature values conform to the chain's rules."""
    recovery_id = v - ARDAN_ID
    if recovery_id not in (0, 1):
        raise SignatureError("invalid recovery id")
    if not (0 < r < _N and 0 < s < _N):
        raise SignatureError("invalid signature values")


def from_address(value: Any, v: int, r: int, s: int) -> str:
    """Return the address of the account that signed ``value``."""
    data = _stamp(value)
    sig = to_signature_bytes(v, r, s)
    return _public_key_address(_recover(data, sig))


def signature_string(v: int, r: int, s: int) -> str:
    """Return the signature as a 0x-prefixed hex string."""
    return "0x" + to_signature_bytes_with_ardan_id(v, r, s).hex()


def to_vrs_from_hex_signature(sig_str: str) -> tuple[int, int, int]:
    """Split a hex signature string into its (v, r, s) values."""
    try:
        sig = bytes.fromhex(sig_str[2:])
    except ValueError as err:
        raise SignatureError(f"invalid signature hex: {err}") from err
    if len(sig) < SIGNATURE_LENGTH:
        raise SignatureError("signature too short")
    r = int.from_bytes(sig[:32], "big")
    s = int.from_bytes(sig[32:64], "big")
    v = sig[64]
    return v, r, s


def _place(buffer: bytearray, offset: int, data: bytes) -> None:
    count = min(len(data), len(buffer) - offset)
    buffer[offset:offset + count] = data[:count]


def _minimal_bytes(number: int) -> bytes:
    return number.to_bytes((number.bit_length() + 7) // 8, "big")


def to_signature_bytes(v: int, r: int, s: int) -> bytes:
    """Pack (v, r, s) into 65 bytes with the chain id removed from v."""
    sig = bytearray(SIGNATURE_LENGTH)
    r_bytes = _minimal_bytes(r)
    _place(sig, 1 if len(r_bytes) == 31 else 0, r_bytes)
    s_bytes = _minimal_bytes(s)
    _place(sig, 33 if len(s_bytes) == 31 else 32, s_bytes)
    sig[64] = (v - ARDAN_ID) & 0xFF
    return bytes(sig)


def to_signature_bytes_with_ardan_id(v: int, r: int, s: int) -> bytes:
    """Pack (v, r, s) into 65 bytes keeping the chain id in v."""
    sig = bytearray(to_signature_bytes(v, r, s))
    sig[64] = v & 0xFF
    return bytes(sig)