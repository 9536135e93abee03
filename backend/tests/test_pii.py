"""
Tests for customer e-mail hashing.
"""
import hashlib

import pytest

from retentionos.core.pii import generate_salt, hash_email, normalize_email, verify_email_hash


def test_hash_is_stable_for_same_salt():
    salt = generate_salt()

    first = hash_email("jane@example.com", salt)
    second = hash_email("jane@example.com", salt)

    assert first == second
    assert first.salt == salt


def test_hash_matches_sha256_of_email_and_salt():
    result = hash_email("jane@example.com", "abc123")

    expected = hashlib.sha256(b"jane@example.comabc123").hexdigest()
    assert result.hash == expected


def test_email_is_normalized_before_hashing():
    salt = "fixed-salt"

    assert hash_email("  Jane@Example.COM ", salt).hash == hash_email("jane@example.com", salt).hash


def test_different_salts_give_different_hashes():
    assert (
        hash_email("jane@example.com", "salt-a").hash
        != hash_email("jane@example.com", "salt-b").hash
    )


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_missing_email_hashes_to_none(raw):
    assert hash_email(raw, "salt") is None
    assert normalize_email(raw) is None


def test_empty_salt_is_rejected():
    with pytest.raises(ValueError):
        hash_email("jane@example.com", "")


def test_verify_email_hash():
    stored = hash_email("jane@example.com", "salt")

    assert verify_email_hash("JANE@example.com", stored.hash, stored.salt)
    assert not verify_email_hash("john@example.com", stored.hash, stored.salt)
    assert not verify_email_hash(None, stored.hash, stored.salt)


def test_generated_salts_are_unique():
    assert len({generate_salt() for _ in range(20)}) == 20
