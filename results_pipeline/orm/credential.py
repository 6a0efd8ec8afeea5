"""
Signed, publicly verifiable credentials ("badges").

Display fields are snapshotted at issuance and never re-joined from the live
student/school tables.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, Any

from sqlalchemy import (
    Column, Integer, String, Boolean, Numeric, ForeignKey, DateTime, CheckConstraint, Index
)
from sqlalchemy.orm import relationship

from results_pipeline.orm.base import Base, QUANTIZER_2DP


def format_issued_at(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2026-03-01T09:30:00.125Z"""
    return value.replace(tzinfo=None).isoformat(timespec="milliseconds") + "Z"


class Credential(Base):
    __tablename__ = "credentials"

    id = Column(Integer, primary_key=True, index=True)
    credential_id = Column(String(64), nullable=False, unique=True, index=True)
    credential_hash = Column(String(64), nullable=False)

    submission_result_id = Column(
        Integer,
        ForeignKey("submission_results.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True
    )
    student_id = Column(Integer, nullable=False, index=True)
    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Snapshot at issuance
    student_name = Column(String(255), nullable=False)
    school_name = Column(String(255), nullable=False)
    event_name = Column(String(255), nullable=False)
    issued_by = Column(String(255), nullable=False)

    tier = Column(String(20), nullable=False)
    rank = Column(Integer, nullable=False)
    weighted_score = Column(Numeric(5, 2), nullable=False)
    issued_at = Column(DateTime, nullable=False)
    is_public = Column(Boolean, nullable=False, default=True)

    submission_result = relationship("SubmissionResult", back_populates="credential")

    __table_args__ = (
        CheckConstraint(
            "tier IN ('gold', 'silver', 'bronze', 'participant')",
            name="ck_credential_tier_valid"
        ),
        Index("idx_credential_public", "is_public", "issued_at"),
    )

    def hash_payload(self) -> Dict[str, Any]:
        """
        Fields bound by `credential_hash`.

        Scores are serialized as 2dp strings and timestamps with millisecond
        precision so the payload reproduces byte-for-byte after a round trip
        through the database.
        """
        return {
            "credential_id": self.credential_id,
            "student_id": self.student_id,
            "event_id": self.event_id,
            "tier": self.tier,
            "rank": self.rank,
            "weighted_score": str(Decimal(str(self.weighted_score)).quantize(QUANTIZER_2DP)),
            "issued_at": format_issued_at(self.issued_at),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "credential_id": self.credential_id,
            "credential_hash": self.credential_hash,
            "student_id": self.student_id,
            "event_id": self.event_id,
            "student_name": self.student_name,
            "school_name": self.school_name,
            "event_name": self.event_name,
            "issued_by": self.issued_by,
            "tier": self.tier,
            "rank": self.rank,
            "weighted_score": str(Decimal(str(self.weighted_score)).quantize(QUANTIZER_2DP)),
            "issued_at": format_issued_at(self.issued_at),
            "is_public": self.is_public,
        }
