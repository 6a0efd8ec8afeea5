"""
Submissions, judge raw scores and public votes.
"""
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Text, Numeric, ForeignKey, DateTime,
    UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship

from results_pipeline.orm.base import Base, utcnow


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"


class Submission(Base):
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    student_id = Column(
        Integer,
        ForeignKey("students.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    title = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=SubmissionStatus.PENDING.value)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    event = relationship("Event", back_populates="submissions")
    student = relationship("Student")
    scores = relationship("SubmissionScore", back_populates="submission", cascade="all, delete-orphan")
    votes = relationship("SubmissionVote", back_populates="submission", cascade="all, delete-orphan")


class SubmissionScore(Base):
    """
    One judge's score for one criterion of one submission.

    Unique per (submission, judge, criterion): a judge re-scoring a criterion
    overwrites the previous value.
    """
    __tablename__ = "submission_scores"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(
        Integer,
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    judge_id = Column(String(64), nullable=False, index=True)
    criterion_id = Column(
        Integer,
        ForeignKey("evaluation_criteria.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    score = Column(Numeric(8, 2), nullable=False)
    feedback = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    submission = relationship("Submission", back_populates="scores")
    criterion = relationship("EvaluationCriterion")

    __table_args__ = (
        UniqueConstraint("submission_id", "judge_id", "criterion_id", name="uq_score_submission_judge_criterion"),
        CheckConstraint("score >= 0", name="ck_score_non_negative"),
    )


class SubmissionVote(Base):
    """A public vote. Only the count per submission matters."""
    __tablename__ = "submission_votes"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(
        Integer,
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    voter_hash = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    submission = relationship("Submission", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("submission_id", "voter_hash", name="uq_vote_submission_voter"),
    )
