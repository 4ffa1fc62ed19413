"""SQLAlchemy table definitions with proper types and constraints."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)

from quickmail.core.database.base import metadata
from quickmail.core.models.message import MessageStatus
from quickmail.utils.errors import InvalidTableError


def _message_columns():
    """Columns shared by the sent log and the drafts table."""
    return [
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("courseid", Integer, nullable=False, index=True),
        Column("userid", Integer, nullable=False, index=True),
        Column("mailto", Text, nullable=False, default="", server_default=""),
        Column("subject", String(255), nullable=False, default="", server_default=""),
        Column("message", Text, nullable=False, default="", server_default=""),
        Column("format", Integer, nullable=False, default=1, server_default="1"),
        Column("attachment", Text, nullable=False, default="", server_default=""),
        Column("time", DateTime, nullable=False),
        Column("sigid", Integer, nullable=False, default=-1, server_default="-1"),
        Column("receipt", Boolean, nullable=False, default=False, server_default="0"),
        Column("noforward", Boolean, nullable=False, default=False, server_default="0"),
        CheckConstraint("format IN (0, 1)", name="format_values"),
    ]


quickmail_log = Table(
    "quickmail_log",
    metadata,
    *_message_columns(),
    Index("ix_quickmail_log_course_user_time", "courseid", "userid", "time"),
)

quickmail_drafts = Table(
    "quickmail_drafts",
    metadata,
    *_message_columns(),
    Index("ix_quickmail_drafts_course_user_time", "courseid", "userid", "time"),
)

quickmail_signatures = Table(
    "quickmail_signatures",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("userid", Integer, nullable=False, index=True),
    Column("title", String(125), nullable=False),
    Column("signature", Text, nullable=False, default="", server_default=""),
    Column("default_flag", Boolean, nullable=False, default=False, server_default="0"),
)

quickmail_config = Table(
    "quickmail_config",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("coursesid", Integer, nullable=False, index=True),
    Column("name", String(100), nullable=False),
    Column("value", Text, nullable=False, default="", server_default=""),
    UniqueConstraint("coursesid", "name", name="uq_quickmail_config_course_name"),
)

MESSAGE_TABLES = {
    MessageStatus.SENT: quickmail_log,
    MessageStatus.DRAFT: quickmail_drafts,
}


def get_table(status: MessageStatus) -> Table:
    """Get the message table that holds records of the given status.

    Raises:
        InvalidTableError: If the status has no table
    """
    if status not in MESSAGE_TABLES:
        raise InvalidTableError(f"No message table for status: {status}")

    return MESSAGE_TABLES[status]
