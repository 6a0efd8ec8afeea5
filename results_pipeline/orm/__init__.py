from .base import Base

from .event import Event, ResultsStatus
from .participant import School, Student
from .rubric import EvaluationCriterion
from .submission import Submission, SubmissionScore, SubmissionVote, SubmissionStatus
from .submission_result import SubmissionResult, Tier
from .credential import Credential

__all__ = [
    "Base",
    "Event",
    "ResultsStatus",
    "School",
    "Student",
    "EvaluationCriterion",
    "Submission",
    "SubmissionScore",
    "SubmissionVote",
    "SubmissionStatus",
    "SubmissionResult",
    "Tier",
    "Credential",
]
