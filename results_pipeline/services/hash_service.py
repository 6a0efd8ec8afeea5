"""
Credential Hash Service

Deterministic canonical serialization and SHA-256 digests for credentials.
All hash computations are deterministic and reproducible.
"""
import hashlib
import hmac
import json
from typing import Dict, Any

CREDENTIAL_PAYLOAD_FIELDS = (
    "credential_id",
    "student_id",
    "event_id",
    "tier",
    "rank",
    "weighted_score",
    "issued_at",
)


class HashService:
    """
    Service for generating and verifying credential hashes.
    """

    @staticmethod
    def canonical_json(payload: Dict[str, Any]) -> str:
        """
        Serialize a payload deterministically.

        Keys sorted, no whitespace. Only the credential payload fields are
        included, so extra keys never change the digest.
        """
        missing = [field for field in CREDENTIAL_PAYLOAD_FIELDS if field not in payload]
        if missing:
            raise ValueError(f"Credential payload missing fields: {missing}")

        clean = {field: payload[field] for field in CREDENTIAL_PAYLOAD_FIELDS}
        return json.dumps(clean, sort_keys=True, separators=(',', ':'))

    @staticmethod
    def compute_credential_hash(payload: Dict[str, Any], secret: str) -> str:
        """
        Formula: sha256(canonical_json(payload) + secret)

        Returns:
            64-character hex SHA256 hash string
        """
        hash_input = HashService.canonical_json(payload) + secret
        return hashlib.sha256(hash_input.encode('utf-8')).hexdigest()

    @staticmethod
    def constant_time_compare(a: str, b: str) -> bool:
        """Constant-time string comparison to prevent timing attacks."""
        return hmac.compare_digest(a.encode('utf-8'), b.encode('utf-8'))
