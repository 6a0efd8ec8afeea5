"""
Credential API Schemas (Pydantic)
"""
from typing import List, Optional

from pydantic import BaseModel


class CredentialResponse(BaseModel):
    credential_id: str
    credential_hash: str
    student_id: int
    event_id: int
    student_name: str
    school_name: str
    event_name: str
    issued_by: str
    tier: str
    rank: int
    weighted_score: str
    issued_at: str
    is_public: bool


class VerifyResponse(BaseModel):
    """`found=False` never carries credential fields."""
    found: bool
    valid: bool
    credential_id: str
    credential_hash: Optional[str] = None
    student_id: Optional[int] = None
    event_id: Optional[int] = None
    student_name: Optional[str] = None
    school_name: Optional[str] = None
    event_name: Optional[str] = None
    issued_by: Optional[str] = None
    tier: Optional[str] = None
    rank: Optional[int] = None
    weighted_score: Optional[str] = None
    issued_at: Optional[str] = None
    is_public: Optional[bool] = None


class CredentialGalleryResponse(BaseModel):
    count: int
    credentials: List[CredentialResponse]
