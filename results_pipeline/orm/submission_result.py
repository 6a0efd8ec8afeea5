"""
Computed, ranked result per submission.

Written only by the results ranker; every lock-and-compute run replaces the
event's rows wholesale.
"""
from enum import Enum
from decimal import Decimal
from typing import Dict, Any

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, CheckConstraint, Index
from sqlalchemy.orm import relationship

from results_pipeline.orm.base import Base, utcnow, QUANTIZER_2DP


class Tier(str, Enum):
    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"
    PARTICIPANT = "participant"


class SubmissionResult(Base):
    __tablename__ = "submission_results"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(
        Integer,
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )
    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    student_id = Column(Integer, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False)

    raw_score = Column(Numeric(10, 2), nullable=False, default=0)
    weighted_score = Column(Numeric(5, 2), nullable=False, default=0)
    public_vote_score = Column(Numeric(5, 2), nullable=False, default=0)
    public_vote_count = Column(Integer, nullable=False, default=0)
    judge_count = Column(Integer, nullable=False, default=0)

    rank = Column(Integer, nullable=False)
    tier = Column(String(20), nullable=False, default=Tier.PARTICIPANT.value)

    computed_at = Column(DateTime, default=utcnow, nullable=False)

    submission = relationship("Submission")
    credential = relationship("Credential", back_populates="submission_result", uselist=False)

    __table_args__ = (
        CheckConstraint("rank >= 1", name="ck_result_rank_positive"),
        CheckConstraint("weighted_score >= 0 AND weighted_score <= 100", name="ck_result_weighted_score_range"),
        CheckConstraint(
            "tier IN ('gold', 'silver', 'bronze', 'participant')",
            name="ck_result_tier_valid"
        ),
        Index("idx_result_event_rank", "event_id", "rank"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with 2dp score strings; `computed_at` is the only volatile field."""
        return {
            "id": self.id,
            "submission_id": self.submission_id,
            "event_id": self.event_id,
            "student_id": self.student_id,
            "raw_score": str(Decimal(str(self.raw_score)).quantize(QUANTIZER_2DP)),
            "weighted_score": str(Decimal(str(self.weighted_score)).quantize(QUANTIZER_2DP)),
            "public_vote_score": str(Decimal(str(self.public_vote_score)).quantize(QUANTIZER_2DP)),
            "public_vote_count": self.public_vote_count,
            "judge_count": self.judge_count,
            "rank": self.rank,
            "tier": self.tier,
            "computed_at": self.computed_at.isoformat() if self.computed_at else None,
        }
