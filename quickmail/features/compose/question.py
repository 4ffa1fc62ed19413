"""Subject and body defaults for questions asked about a quiz attempt."""

import html
from functools import singledispatch

from quickmail.core.models import QuestionAttempt, QuizOwned, UnknownOwner, User
from quickmail.utils.security import HtmlSecurity

from .strings import get_string


@singledispatch
def question_subject(owner, attempt: QuestionAttempt) -> str:
    """Default subject line, chosen by the activity that owns the attempt."""
    raise TypeError(f"Unsupported attempt owner: {type(owner).__name__}")


@question_subject.register
def _(owner: QuizOwned, attempt: QuestionAttempt) -> str:
    return get_string("question_in_quiz", slot=attempt.slot, quiz=owner.quiz_name)


@question_subject.register
def _(owner: UnknownOwner, attempt: QuestionAttempt) -> str:
    return get_string("question_generic", slot=attempt.slot)


def question_body(attempt: QuestionAttempt, learner: User) -> str:
    """HTML body quoting the question, the last response and a link back.

    The question text comes from user-authored content and is sanitized
    before it is quoted.
    """
    name = html.escape(learner.fullname)
    prompt = HtmlSecurity.sanitize(attempt.question_text) or HtmlSecurity.from_plain_text(
        attempt.question_summary
    )

    parts = [
        "<p></p>",
        f'<div style="font-style: italic;">{get_string("withregardtoq")}</div>',
        f"<blockquote>{prompt}</blockquote>",
    ]

    if attempt.response_summary:
        parts.append(
            f'<div style="font-style: italic;">{get_string("lastresponse", name=name)}</div>'
        )
        parts.append(
            f"<blockquote>{HtmlSecurity.from_plain_text(attempt.response_summary)}</blockquote>"
        )

    if attempt.attempt_url:
        href = html.escape(attempt.attempt_url, quote=True)
        parts.append(f'<p><a href="{href}">{get_string("viewattempt")}</a></p>')

    return "\n".join(parts)
