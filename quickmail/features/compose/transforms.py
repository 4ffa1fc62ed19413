"""Send-time transforms applied to the dispatched copy of a message."""

from dataclasses import replace
from typing import Mapping

from quickmail.core.models import Course, CourseConfig, Message, MessageFormat, Signature
from quickmail.utils.security import HtmlSecurity


def append_signature(message: Message, signatures: Mapping[int, Signature]) -> Message:
    """Copy of ``message`` with the selected signature appended to the body.

    A negative or unknown signature id leaves the message unchanged.
    """
    if message.signature_id < 0:
        return message

    signature = signatures.get(message.signature_id)
    if signature is None or not signature.text:
        return message

    if message.body_format == MessageFormat.HTML:
        body = f"{message.body}<br /><br />{signature.text}"
    else:
        body = f"{message.body}\n\n{HtmlSecurity.to_plain_text(signature.text)}"

    return replace(message, body=body)


def prefix_subject(message: Message, course: Course, config: CourseConfig) -> Message:
    """Copy of ``message`` with the course label prefixed to the subject.

    Applied at most once per copy; the stored subject never carries it.
    """
    if message.subject_prefixed:
        return message

    label = config.course_label(course)
    if not label:
        return replace(message, subject_prefixed=True)

    return replace(message, subject=f"[{label}] {message.subject}", subject_prefixed=True)


def forward_subject(subject: str, prefix: str) -> str:
    """Subject for a forwarded message."""
    return f"{prefix}: {subject}"


def render_bodies(message: Message) -> tuple:
    """(plain, html) renderings of the message body."""
    if message.body_format == MessageFormat.HTML:
        return HtmlSecurity.to_plain_text(message.body), message.body

    return message.body, HtmlSecurity.from_plain_text(message.body)
