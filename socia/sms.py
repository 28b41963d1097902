"""SMS verification codes.

Only a mock provider exists: codes are logged instead of sent. Codes are
kept in memory as bcrypt hashes, expire after a TTL and are single use.
"""

import logging
import secrets
import threading
import time
from typing import Protocol

import bcrypt

logger = logging.getLogger("socia.sms")

CODE_LENGTH = 6


def generate_code() -> str:
    """A random 6-digit numeric code."""
    return f"{secrets.randbelow(10 ** CODE_LENGTH):0{CODE_LENGTH}d}"


def hash_code(code: str) -> str:
    """Hash a verification code using bcrypt."""
    return bcrypt.hashpw(code.encode(), bcrypt.gensalt()).decode()


def verify_code_hash(plain: str, hashed: str) -> bool:
    """Verify a verification code against its hash."""
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        return False


class SMSService(Protocol):
    async def send_code(self, phone: str) -> str: ...

    async def verify_code(self, phone: str, code: str) -> bool: ...


class MockSMSService:
    """In-memory SMS provider for development and tests."""

    def __init__(self, ttl_seconds: int = 300, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._codes: dict[str, tuple[str, float]] = {}  # phone -> (hash, expires_at)
        self._lock = threading.Lock()

    async def send_code(self, phone: str) -> str:
        """Issue a new code for a phone, replacing any earlier one."""
        code = generate_code()
        expires_at = self._clock() + self.ttl_seconds
        hashed = hash_code(code)
        with self._lock:
            self._codes[phone] = (hashed, expires_at)
        logger.info(f"[MOCK SMS] Sending code {code} to {phone}")
        return code

    async def verify_code(self, phone: str, code: str) -> bool:
        """Check a code. A matching code is consumed; expired codes are discarded."""
        with self._lock:
            entry = self._codes.get(phone)
            if entry is None:
                return False
            hashed, expires_at = entry
            if self._clock() > expires_at:
                del self._codes[phone]
                return False
            if not verify_code_hash(code, hashed):
                return False
            del self._codes[phone]
        return True
