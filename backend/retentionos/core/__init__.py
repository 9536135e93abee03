"""
Core package containing configuration, database, security, and logging.
"""
from retentionos.core.config import settings
from retentionos.core.database import Base, DbSession, get_db_session
from retentionos.core.logging import configure_logging, get_logger
from retentionos.core.pii import EmailHash, hash_email, verify_email_hash
from retentionos.core.security import (
    create_access_token,
    decode_access_token,
    decrypt_token,
    encrypt_token,
)

__all__ = [
    "settings",
    "Base",
    "DbSession",
    "get_db_session",
    "configure_logging",
    "get_logger",
    "EmailHash",
    "hash_email",
    "verify_email_hash",
    "encrypt_token",
    "decrypt_token",
    "create_access_token",
    "decode_access_token",
]
