"""Credential helpers for verification artifacts and directory passwords.

Pipeline:
- new_verification_token / hash_token: link tokens (plain in the link, SHA-256 at rest)
- new_otp_code / hash_otp_code / otp_code_matches: 6-digit codes, bcrypt at rest
- encrypt_password / decrypt_password: Fernet at-rest encryption for staged
  self-registration passwords (must be replayed into the directory later)
- validate_password_policy / validate_password_confirmation: directory password rules
- generate_temporary_password / generate_username: admin-created identities
"""

import hashlib
import re
import secrets
import unicodedata

import bcrypt
from cryptography.fernet import Fernet, InvalidToken

from app.core.config import settings
from app.core.errors import ValidationError

_BCRYPT_ROUNDS = 12

_OTP_SPACE = 1_000_000

# Mirrors the realm password policy: digit, lower, upper, special, 8+ chars
_PASSWORD_POLICY = re.compile(
    r"^(?=.*[0-9])(?=.*[a-z])(?=.*[A-Z])(?=.*[^a-zA-Z0-9\s]).{8,}$"
)

# Ambiguous characters (0/O, 1/l/I) are left out
_TEMP_UPPER = "ABCDEFGHJKLMNPQRSTUVWXYZ"
_TEMP_LOWER = "abcdefghijkmnopqrstuvwxyz"
_TEMP_DIGITS = "23456789"
_TEMP_SPECIAL = "!@#$%^&*"
_TEMP_PASSWORD_LENGTH = 12

_USERNAME_MIN_LENGTH = 3
_USERNAME_MAX_LENGTH = 30


# ===================================================================
# Verification tokens
# ===================================================================


def hash_token(plain_token: str) -> str:
    """SHA-256 hex digest used to store and look up link tokens."""
    return hashlib.sha256(plain_token.encode()).hexdigest()


def new_verification_token() -> tuple[str, str]:
    """Generate a link token and its SHA-256 hash.

    Returns:
        (plain_token, token_hash): plain for the link, hash for DB storage.
    """
    plain = secrets.token_urlsafe(32)
    return plain, hash_token(plain)


# ===================================================================
# One-time codes
# ===================================================================


def new_otp_code() -> str:
    """Draw a zero-padded 6-digit code from a CSPRNG."""
    return f"{secrets.randbelow(_OTP_SPACE):06d}"


def hash_otp_code(code: str) -> str:
    """bcrypt-hash a one-time code for storage."""
    return bcrypt.hashpw(code.encode(), bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)).decode()


def otp_code_matches(code: str, code_hash: str) -> bool:
    """Constant-time comparison of a presented code against its stored hash."""
    try:
        return bcrypt.checkpw(code.encode(), code_hash.encode())
    except ValueError:
        # Malformed stored hash
        return False


# ===================================================================
# At-rest password encryption
# ===================================================================


def _fernet() -> Fernet:
    key = settings.encryption_key.get_secret_value()
    if not key:
        msg = "ENCRYPTION_KEY is not configured"
        raise RuntimeError(msg)
    return Fernet(key.encode())


def encrypt_password(raw_password: str) -> str:
    """Encrypt a password so it can be replayed into the directory later.

    Raises:
        RuntimeError: If ENCRYPTION_KEY is not configured.
    """
    return _fernet().encrypt(raw_password.encode()).decode()


def decrypt_password(encrypted_password: str) -> str:
    """Reverse encrypt_password.

    Raises:
        RuntimeError: If ENCRYPTION_KEY is missing or no longer matches
            the key the value was encrypted with.
    """
    try:
        return _fernet().decrypt(encrypted_password.encode()).decode()
    except InvalidToken as e:
        msg = "Stored password could not be decrypted with ENCRYPTION_KEY"
        raise RuntimeError(msg) from e


# ===================================================================
# Password rules
# ===================================================================


def validate_password_confirmation(password: str, confirm_password: str) -> None:
    """Raise ValidationError(PASSWORD_MISMATCH) if the two entries differ."""
    if password != confirm_password:
        raise ValidationError("Passwords do not match", code="PASSWORD_MISMATCH")


def validate_password_policy(password: str) -> None:
    """Validate password against the directory's password policy.

    Args:
        password: Plain-text password to validate.

    Raises:
        ValidationError: PASSWORD_POLICY_VIOLATION if the password is too
            weak for the directory to accept.
    """
    if not _PASSWORD_POLICY.match(password):
        raise ValidationError(
            "Password must be at least 8 characters and contain an uppercase "
            "letter, a lowercase letter, a number and a special character",
            code="PASSWORD_POLICY_VIOLATION",
        )


def generate_temporary_password() -> str:
    """Generate a 12-character one-time password with one of each class."""
    chars = [
        secrets.choice(_TEMP_UPPER),
        secrets.choice(_TEMP_LOWER),
        secrets.choice(_TEMP_DIGITS),
        secrets.choice(_TEMP_SPECIAL),
    ]
    alphabet = _TEMP_UPPER + _TEMP_LOWER + _TEMP_DIGITS + _TEMP_SPECIAL
    chars.extend(
        secrets.choice(alphabet) for _ in range(_TEMP_PASSWORD_LENGTH - len(chars))
    )
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


# ===================================================================
# Usernames
# ===================================================================


def _ascii_fold(value: str) -> str:
    """é → e, ç → c."""
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def generate_username(first_name: str, last_name: str) -> str:
    """Build a ``first.last`` username from display names.

    Args:
        first_name: Given name, any script.
        last_name: Family name, any script.

    Returns:
        Lowercase username of 3-30 characters from ``[a-z0-9._]``.

    Raises:
        ValidationError: USERNAME_GENERATION_FAILED if too few usable
            characters remain after normalization.
    """
    base = f"{_ascii_fold(first_name.lower())}.{_ascii_fold(last_name.lower())}"
    cleaned = re.sub(r"[^a-z0-9._]", "", base)
    cleaned = re.sub(r"^[._]+|[._]+$", "", cleaned)
    cleaned = re.sub(r"[._]{2,}", ".", cleaned)

    if len(cleaned) < _USERNAME_MIN_LENGTH:
        raise ValidationError(
            f"Could not generate a valid username from names '{first_name} "
            f"{last_name}'. Please provide a username manually.",
            code="USERNAME_GENERATION_FAILED",
        )

    return cleaned[:_USERNAME_MAX_LENGTH]


def suffixed_username(username: str) -> str:
    """Append a random ``.NNN`` suffix (100-198) to a taken username."""
    return f"{username}.{100 + secrets.randbelow(99)}"
