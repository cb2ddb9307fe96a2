import logging
import re

from passlib.context import CryptContext
from passlib.handlers import bcrypt as passlib_bcrypt

logging.getLogger("passlib.handlers.bcrypt").setLevel(logging.ERROR)

# bcrypt>=4.1 rejects secrets over 72 bytes instead of truncating them.
if not getattr(passlib_bcrypt._BcryptBackend, "_tkd_verify_patch", False):
    _orig_backend_verify = passlib_bcrypt._BcryptBackend.verify.__func__

    def _backend_verify_safe(cls, secret, hash, **context):
        try:
            return _orig_backend_verify(cls, secret, hash, **context)
        except ValueError as exc:
            if "password cannot be longer than 72 bytes" in str(exc):
                return False
            raise

    passlib_bcrypt._BcryptBackend.verify = classmethod(_backend_verify_safe)
    passlib_bcrypt._BcryptBackend._tkd_verify_patch = True

passlib_bcrypt._BcryptBackend._workrounds_initialized = True

pwd_ctx = CryptContext(
    schemes=["bcrypt_sha256", "bcrypt"],
    deprecated="auto",
)

MIN_PASSWORD_LENGTH = 8


def hash_password(plain: str) -> str:
    """Return bcrypt_sha256 hash for plain password."""
    return pwd_ctx.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    if not plain or not hashed:
        return False
    try:
        return pwd_ctx.verify(plain, hashed)
    except ValueError:
        return False


def password_problems(plain: str) -> list[str]:
    """Return human readable reasons why ``plain`` is too weak (empty when ok)."""

    problems = []
    if len(plain or "") < MIN_PASSWORD_LENGTH:
        problems.append(f"must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not re.search(r"[a-z]", plain or ""):
        problems.append("must contain a lowercase letter")
    if not re.search(r"[A-Z]", plain or ""):
        problems.append("must contain an uppercase letter")
    if not re.search(r"\d", plain or ""):
        problems.append("must contain a number")
    return problems
