"""
Competition event and its results lifecycle state.
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint, Index
from sqlalchemy.orm import relationship

from results_pipeline.orm.base import Base, utcnow


class ResultsStatus(str, Enum):
    """Event results lifecycle, strict forward order."""
    NOT_STARTED = "not_started"
    SCORING_OPEN = "scoring_open"
    SCORING_LOCKED = "scoring_locked"
    REVIEW = "review"
    PUBLISHED = "published"


MAX_PUBLIC_VOTE_WEIGHT = 60
DEFAULT_PUBLIC_VOTE_WEIGHT = 20


class Event(Base):
    """
    A competition event.

    `results_status` is mutated only by the lifecycle service.
    `public_vote_weight` is the percent (0-60) of the final score attributable
    to public votes.
    """
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    results_status = Column(
        String(30),
        nullable=False,
        default=ResultsStatus.NOT_STARTED.value
    )
    public_vote_weight = Column(Integer, nullable=False, default=DEFAULT_PUBLIC_VOTE_WEIGHT)
    results_published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    criteria = relationship(
        "EvaluationCriterion",
        back_populates="event",
        order_by="EvaluationCriterion.display_order",
        cascade="all, delete-orphan"
    )
    submissions = relationship("Submission", back_populates="event")

    __table_args__ = (
        CheckConstraint(
            "results_status IN ('not_started', 'scoring_open', 'scoring_locked', 'review', 'published')",
            name="ck_event_results_status_valid"
        ),
        CheckConstraint(
            "(results_status != 'published') OR (results_published_at IS NOT NULL)",
            name="ck_event_published_has_timestamp"
        ),
        Index("idx_event_results_status", "results_status"),
    )

    @property
    def status(self) -> ResultsStatus:
        return ResultsStatus(self.results_status)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "results_status": self.results_status,
            "public_vote_weight": self.public_vote_weight,
            "results_published_at": self.results_published_at.isoformat() if self.results_published_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
