"""
E-mail hashing for customer PII.

Plain-text addresses never reach the customers table. Each account owns one
persisted salt, so the same address always hashes to the same value within an
account (cross-record matching works) while hashes are not comparable across
tenants.
"""
import hashlib
import hmac
import secrets
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EmailHash:
    hash: str
    salt: str


def generate_salt() -> str:
    """16 random bytes, hex encoded."""
    return secrets.token_hex(16)


def normalize_email(raw_email: Optional[str]) -> Optional[str]:
    if raw_email is None:
        return None
    email = raw_email.strip().lower()
    return email or None


def hash_email(raw_email: Optional[str], salt: str) -> Optional[EmailHash]:
    """
    Hash an e-mail address with the given salt.

    Returns None when there is no address to hash.
    """
    if not salt:
        raise ValueError("salt is required")
    email = normalize_email(raw_email)
    if email is None:
        return None
    digest = hashlib.sha256((email + salt).encode("utf-8")).hexdigest()
    return EmailHash(hash=digest, salt=salt)


def verify_email_hash(raw_email: Optional[str], stored_hash: str, stored_salt: str) -> bool:
    """Check an address against a stored hash/salt pair."""
    computed = hash_email(raw_email, stored_salt)
    if computed is None:
        return False
    return hmac.compare_digest(computed.hash, stored_hash)
