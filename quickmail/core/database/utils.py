"""Database utilities."""

from typing import List

from quickmail.core.models.message import Message, MessageFormat, MessageStatus, Signature


def split_ids(value: str) -> List[int]:
    """Parse a comma-separated id list, skipping blanks and junk."""
    ids = []
    for part in (value or "").split(","):
        part = part.strip()
        if part.lstrip("-").isdigit():
            ids.append(int(part))

    return ids


def split_names(value: str) -> List[str]:
    """Parse a comma-separated attachment manifest."""
    return [name.strip() for name in (value or "").split(",") if name.strip()]


def message_to_row(message: Message) -> dict:
    """Convert Message domain object to database row dict."""
    return {
        "courseid": message.course_id,
        "userid": message.sender_id,
        "mailto": ",".join(str(user_id) for user_id in message.mailto),
        "subject": message.subject,
        "message": message.body,
        "format": message.body_format.value,
        "attachment": ",".join(message.attachments),
        "time": message.time,
        "sigid": message.signature_id,
        "receipt": message.receipt,
        "noforward": message.no_forward,
    }


def row_to_message(row, status: MessageStatus) -> Message:
    """Convert database row to Message domain object."""
    return Message(
        id=row.id,
        course_id=row.courseid,
        sender_id=row.userid,
        subject=row.subject or "",
        body=row.message or "",
        body_format=MessageFormat(row.format),
        attachments=split_names(row.attachment),
        mailto=split_ids(row.mailto),
        time=row.time,
        status=status,
        signature_id=row.sigid,
        receipt=bool(row.receipt),
        no_forward=bool(row.noforward),
    )


def row_to_signature(row) -> Signature:
    """Convert database row to Signature domain object."""
    return Signature(
        id=row.id,
        owner_id=row.userid,
        title=row.title,
        text=row.signature or "",
        is_default=bool(row.default_flag),
    )
