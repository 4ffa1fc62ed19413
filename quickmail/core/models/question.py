"""Question attempt models used by the ask-instructor-about-a-question composer."""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class QuizOwned:
    """The attempt belongs to a quiz."""

    quiz_id: int
    quiz_name: str


@dataclass(frozen=True)
class UnknownOwner:
    """The attempt belongs to an activity type we have no wording for."""

    component: str = ""


AttemptOwner = Union[QuizOwned, UnknownOwner]


@dataclass(frozen=True)
class QuestionAttempt:
    """A learner's attempt at one question, as reported by the question engine."""

    id: int
    course_id: int
    user_id: int
    slot: int
    owner: AttemptOwner
    question_text: str = ""
    question_summary: str = ""
    response_summary: str = ""
    attempt_url: str = ""
