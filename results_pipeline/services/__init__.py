from .lifecycle_service import LifecycleService
from .scoring_service import ScoringService, ScoreEntry
from .credential_issuer import CredentialIssuer
from .credential_verifier import CredentialVerifier
from .hash_service import HashService

__all__ = [
    "LifecycleService",
    "ScoringService",
    "ScoreEntry",
    "CredentialIssuer",
    "CredentialVerifier",
    "HashService",
]
