"""Message domain models"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

NO_SIGNATURE = -1


class MessageStatus(Enum):
    """Which logical table a message lives in."""

    DRAFT = "drafts"
    SENT = "log"


class MessageFormat(Enum):
    """Body formats understood by the composer."""

    PLAIN = 0
    HTML = 1


@dataclass
class Message:
    """A draft or sent message."""

    course_id: int
    sender_id: int
    subject: str = ""
    body: str = ""
    body_format: MessageFormat = MessageFormat.HTML
    attachments: List[str] = field(default_factory=list)
    mailto: List[int] = field(default_factory=list)
    time: datetime = field(default_factory=datetime.now)
    status: MessageStatus = MessageStatus.DRAFT
    signature_id: int = NO_SIGNATURE
    receipt: bool = False
    no_forward: bool = False
    id: Optional[int] = None

    # Set on the dispatched copy only; never persisted
    subject_prefixed: bool = field(default=False, compare=False)


@dataclass(frozen=True)
class Signature:
    """A reusable signature block owned by a sender."""

    id: int
    owner_id: int
    title: str
    text: str
    is_default: bool = False


@dataclass(frozen=True)
class DeliveryFailure:
    """One recipient that the mailer could not deliver to."""

    recipient_id: int
    email: str
    reason: str = ""


@dataclass(frozen=True)
class Destination:
    """Opaque navigation target handed back to the presentation layer."""

    name: str
    params: dict = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class ArchiveDescriptor:
    """A transient zip of a message's attachments, ready to hand to a mailer."""

    name: str
    path: Path
