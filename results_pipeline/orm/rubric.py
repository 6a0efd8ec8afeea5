"""
Rubric criteria for an event.
"""
from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey, DateTime, CheckConstraint
from sqlalchemy.orm import relationship

from results_pipeline.orm.base import Base, utcnow


class EvaluationCriterion(Base):
    """
    One weighted scoring dimension of an event rubric.

    Weights need not sum to 100; aggregation normalizes against their sum.
    """
    __tablename__ = "evaluation_criteria"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    max_score = Column(Numeric(8, 2), nullable=False)
    weight = Column(Numeric(8, 2), nullable=False, default=1)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    event = relationship("Event", back_populates="criteria")

    __table_args__ = (
        CheckConstraint("max_score > 0", name="ck_criterion_max_score_positive"),
        CheckConstraint("weight >= 0", name="ck_criterion_weight_non_negative"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "event_id": self.event_id,
            "title": self.title,
            "description": self.description,
            "max_score": float(self.max_score),
            "weight": float(self.weight),
            "display_order": self.display_order,
        }
