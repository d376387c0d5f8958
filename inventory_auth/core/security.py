"""Security primitives: password hashing, one-time codes and signed tokens."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time
from typing import Any

PBKDF2_ROUNDS = 310_000
ONE_TIME_CODE_MIN = 100_000
ONE_TIME_CODE_MAX = 999_999


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("utf-8"))


def hash_password(password: str, *, rounds: int = PBKDF2_ROUNDS) -> str:
    """Hash password using PBKDF2-HMAC-SHA256 with a random salt.

    The iteration count is stored inside the hash so it can be raised later
    without invalidating existing credentials.
    """
    salt = secrets.token_bytes(16)
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return f"pbkdf2_sha256${rounds}${_b64url_encode(salt)}${_b64url_encode(derived)}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify password against a stored PBKDF2 hash in constant time."""
    try:
        algo, rounds_raw, salt_b64, digest_b64 = stored_hash.split("$", 3)
        if algo != "pbkdf2_sha256":
            return False
        rounds = int(rounds_raw)
        salt = _b64url_decode(salt_b64)
        expected = _b64url_decode(digest_b64)
    except (ValueError, TypeError):
        return False

    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(derived, expected)


# Verified against when the account does not exist, so both paths cost one PBKDF2 run.
DUMMY_PASSWORD_HASH = hash_password(secrets.token_urlsafe(16))


def generate_one_time_code() -> str:
    """Return a uniformly random six-digit numeric code."""
    span = ONE_TIME_CODE_MAX - ONE_TIME_CODE_MIN + 1
    return str(ONE_TIME_CODE_MIN + secrets.randbelow(span))


def hash_one_time_code(code: str, secret_key: str) -> str:
    """Return keyed digest of a one-time code for storage."""
    return hmac.new(
        secret_key.encode("utf-8"), code.strip().encode("utf-8"), hashlib.sha256
    ).hexdigest()


def one_time_code_matches(code: str, expected_hash: str, secret_key: str) -> bool:
    return hmac.compare_digest(hash_one_time_code(code, secret_key), expected_hash)


def new_opaque_token() -> str:
    return secrets.token_urlsafe(32)


def build_signed_token(payload: dict[str, Any], secret_key: str) -> str:
    """Create compact HS256 token using the JWT 3-part structure."""
    header = {"alg": "HS256", "typ": "JWT"}
    header_part = _b64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_part = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    signature = hmac.new(secret_key.encode("utf-8"), signing_input, hashlib.sha256).digest()
    return f"{header_part}.{payload_part}.{_b64url_encode(signature)}"


def decode_signed_token(token: str, secret_key: str) -> dict[str, Any]:
    """Decode and verify compact signed token, raising ``ValueError`` on failure."""
    parts = token.split(".")
    if len(parts) != 3:
        raise ValueError("Malformed token")
    header_part, payload_part, signature_part = parts

    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    expected_sig = hmac.new(secret_key.encode("utf-8"), signing_input, hashlib.sha256).digest()
    try:
        got_sig = _b64url_decode(signature_part)
        header = json.loads(_b64url_decode(header_part).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise ValueError("Malformed token") from exc
    if not hmac.compare_digest(expected_sig, got_sig):
        raise ValueError("Invalid token signature")
    if not isinstance(header, dict) or header.get("alg") != "HS256":
        raise ValueError("Unsupported token algorithm")

    try:
        payload = json.loads(_b64url_decode(payload_part).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise ValueError("Invalid token payload") from exc
    if not isinstance(payload, dict):
        raise ValueError("Invalid token payload")

    try:
        exp = int(payload.get("exp") or 0)
    except (TypeError, ValueError) as exc:
        raise ValueError("Invalid token expiry") from exc
    if not exp:
        raise ValueError("Token has no expiry")
    if exp <= int(time.time()):
        raise ValueError("Token expired")

    return payload
