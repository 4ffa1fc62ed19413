"""The message composer: one concrete class shared by every compose mode.

A composer is built per request by one of the factories in
``quickmail.features.compose.factory``. What differs between modes is
carried by two injected values:

- a ``RecipientStrategy`` deciding who can be addressed, and
- a ``ComposerPolicy`` holding the mode's flags (draft support, subject
  decoration, draft cleanup, capability, header).
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from quickmail.core.database.utils import split_ids
from quickmail.core.models import (
    NO_SIGNATURE,
    ArchiveDescriptor,
    DeliveryFailure,
    Destination,
    Message,
    MessageFormat,
    MessageStatus,
    SendContext,
    Signature,
    User,
)
from quickmail.core.recipients import EligibleRecipients, RecipientOption
from quickmail.core.services import UPLOAD_AREA, UPLOAD_COMPONENT
from quickmail.core.store import message_area, upload_area
from quickmail.utils.errors import (
    DeliveryError,
    DraftNotSupportedError,
    InvalidEmailAddressError,
    MissingRecipientsError,
    MissingSubjectAndRecipientsError,
    MissingSubjectError,
    ValidationError,
)
from quickmail.utils.logging import async_log_call, get_logger, log_event

from .strategies import RecipientStrategy
from .strings import get_string
from .transforms import append_signature, prefix_subject, render_bodies


class ComposeAction(Enum):
    """Which button a submission was made with."""

    SEND = "send"
    SAVE = "save"
    CANCEL = "cancel"


@dataclass(frozen=True)
class ComposerPolicy:
    """Per-mode behaviour flags."""

    name: str
    required_capability: str
    header_key: str = "composenew"
    allow_draft: bool = True
    no_forward_default: bool = False
    subject_decorator: Optional[Callable[[str], str]] = None
    cleanup_source_draft: bool = False
    honour_allow_students: bool = False


@dataclass(frozen=True)
class ComposeDefaults:
    """Initial subject and body supplied by the mode rather than a record."""

    subject: str = ""
    body: str = ""
    body_format: MessageFormat = MessageFormat.HTML


@dataclass
class ComposeSubmission:
    """The latest state submitted from the compose surface."""

    subject: str = ""
    body: str = ""
    body_format: MessageFormat = MessageFormat.HTML
    mailto: List[int] = field(default_factory=list)
    signature_id: int = NO_SIGNATURE
    receipt: bool = False
    attachments_item_id: Optional[int] = None
    action: ComposeAction = ComposeAction.SEND

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> "ComposeSubmission":
        """Build a submission from raw form fields.

        ``mailto`` may be a comma-separated string or a list of ids. The
        action is taken from whichever of ``cancel``, ``save`` or ``send``
        is present, in that order of precedence.
        """
        mailto = form.get("mailto", [])
        if isinstance(mailto, str):
            mailto = split_ids(mailto)

        if form.get("cancel"):
            action = ComposeAction.CANCEL
        elif form.get("save"):
            action = ComposeAction.SAVE
        else:
            action = ComposeAction.SEND

        item_id = form.get("attachments")

        return cls(
            subject=str(form.get("subject", "")),
            body=str(form.get("message", "")),
            body_format=MessageFormat(int(form.get("format", MessageFormat.HTML.value))),
            mailto=[int(user_id) for user_id in mailto],
            signature_id=int(form.get("sigid", NO_SIGNATURE)),
            receipt=bool(int(form.get("receipt", 0))),
            attachments_item_id=int(item_id) if item_id not in (None, "") else None,
            action=action,
        )


@dataclass
class ComposeView:
    """Presentation-agnostic editable surface of a composer."""

    header: str
    subject: str
    body: str
    body_format: MessageFormat
    signature_id: int
    signatures: List[Signature]
    receipt: bool
    attachments_item_id: int
    recipients: List[User]
    selectable: bool
    selected: List[int]
    options: List[RecipientOption]
    allow_draft: bool


@dataclass
class ComposeOutcome:
    """What ``Composer.process`` did with the latest submission."""

    action: ComposeAction
    message_id: Optional[int] = None
    failures: List[DeliveryFailure] = field(default_factory=list)
    destination: Optional[Destination] = None


class Composer:
    """Validates, stores and dispatches one message."""

    def __init__(
        self,
        services,
        policy: ComposerPolicy,
        strategy: RecipientStrategy,
        context: SendContext,
        signatures: List[Signature],
        signature_id: int = NO_SIGNATURE,
        source: Optional[Message] = None,
        defaults: Optional[ComposeDefaults] = None,
    ):
        self.services = services
        self.policy = policy
        self.strategy = strategy
        self.context = context
        self.signatures = list(signatures)
        self.signature_id = signature_id
        self.source = source
        self.defaults = defaults or ComposeDefaults()
        self.logger = get_logger(
            __name__, course_id=context.course.id, user_id=context.acting_user.id
        )

        self.source_draft_id = (
            source.id if source is not None and source.status == MessageStatus.DRAFT else None
        )
        self.draft_id = self.source_draft_id
        self.last_message_id: Optional[int] = None

        self._signatures_by_id: Dict[int, Signature] = {sig.id: sig for sig in self.signatures}
        self._eligible: Optional[EligibleRecipients] = None
        self._view: Optional[ComposeView] = None
        self._submission: Optional[ComposeSubmission] = None

    @property
    def acting_user(self) -> User:
        return self.context.acting_user

    # Recipients and view

    async def eligible(self) -> EligibleRecipients:
        """The strategy's candidates, loaded once per composer."""
        if self._eligible is None:
            self._eligible = await self.strategy.load(self.context)

        return self._eligible

    async def potential_recipients_exist(self) -> bool:
        return len(await self.eligible()) > 0

    async def get_compose_view(self) -> ComposeView:
        """Build the editable surface on first use and return the same one after."""
        if self._view is not None:
            return self._view

        eligible = await self.eligible()
        source = self.source

        if source is not None:
            subject = source.subject
            if self.policy.subject_decorator is not None:
                subject = self.policy.subject_decorator(subject)
            body, body_format, receipt = source.body, source.body_format, source.receipt
            item_id = self.services.store.prepare_upload(source, self.acting_user.id)
        else:
            subject, body, body_format = (
                self.defaults.subject,
                self.defaults.body,
                self.defaults.body_format,
            )
            receipt = self.context.config.receipt
            item_id = self.services.file_area.allocate_item_id(
                self.acting_user.id, UPLOAD_COMPONENT, UPLOAD_AREA
            )

        self._view = ComposeView(
            header=self.get_header_string(),
            subject=subject,
            body=body,
            body_format=body_format,
            signature_id=self.signature_id,
            signatures=list(self.signatures),
            receipt=receipt,
            attachments_item_id=item_id,
            recipients=list(eligible.users),
            selectable=self.strategy.selectable,
            selected=self.strategy.preselected(eligible),
            options=eligible.options() if self.strategy.selectable else [],
            allow_draft=self.policy.allow_draft,
        )

        return self._view

    def get_header_string(self) -> str:
        return get_string(self.policy.header_key)

    def get_success_destination(self) -> Destination:
        return Destination("emaillog", {"courseid": self.context.course.id})

    def get_cancel_destination(self) -> Destination:
        return Destination("course", {"id": self.context.course.id})

    # Submission routing

    def submit(self, data: ComposeSubmission) -> None:
        """Record the latest submitted state."""
        self._submission = data

    def send_requested(self) -> bool:
        return self._submission is not None and self._submission.action == ComposeAction.SEND

    def save_requested(self) -> bool:
        return self._submission is not None and self._submission.action == ComposeAction.SAVE

    def cancel_requested(self) -> bool:
        return self._submission is not None and self._submission.action == ComposeAction.CANCEL

    def _current(self, data: Optional[ComposeSubmission]) -> ComposeSubmission:
        if data is not None:
            return data

        if self._submission is None:
            raise ValidationError("Nothing has been submitted")

        return self._submission

    async def process(self) -> ComposeOutcome:
        """Act on the latest submission: cancel, save a draft or send."""
        data = self._current(None)

        if data.action == ComposeAction.CANCEL:
            return ComposeOutcome(ComposeAction.CANCEL, destination=self.get_cancel_destination())

        if data.action == ComposeAction.SAVE:
            draft_id = await self.save_draft(data=data)
            return ComposeOutcome(ComposeAction.SAVE, message_id=draft_id)

        failures = await self.send(data)
        return ComposeOutcome(
            ComposeAction.SEND,
            message_id=self.last_message_id,
            failures=failures,
            destination=None if failures else self.get_success_destination(),
        )

    # Validation

    async def validate(self, data: Optional[ComposeSubmission] = None) -> List[int]:
        """Check subject and recipients; returns the requested recipient ids.

        Raises:
            MissingSubjectAndRecipientsError, MissingSubjectError,
            MissingRecipientsError: On the matching omission
        """
        data = self._current(data)
        requested = self.strategy.requested_ids(data.mailto, await self.eligible())

        missing_subject = not data.subject.strip()
        missing_recipients = not requested

        if missing_subject and missing_recipients:
            raise MissingSubjectAndRecipientsError()
        if missing_subject:
            raise MissingSubjectError()
        if missing_recipients:
            raise MissingRecipientsError()

        return requested

    # Persistence and dispatch

    def _build_message(
        self, data: ComposeSubmission, status: MessageStatus, mailto: List[int]
    ) -> Message:
        return Message(
            course_id=self.context.course.id,
            sender_id=self.acting_user.id,
            subject=data.subject,
            body=data.body,
            body_format=data.body_format,
            mailto=list(mailto),
            status=status,
            signature_id=data.signature_id,
            receipt=data.receipt,
            no_forward=self.policy.no_forward_default,
        )

    def _upload(self, data: ComposeSubmission):
        if data.attachments_item_id is None:
            return None

        return upload_area(self.acting_user.id, data.attachments_item_id)

    @async_log_call
    async def save_draft(
        self, existing_id: Optional[int] = None, data: Optional[ComposeSubmission] = None
    ) -> Optional[int]:
        """Store the submission as a draft and return its id.

        Updates ``existing_id`` (or the draft this composer already owns)
        when there is one, inserts otherwise. Never packages or delivers.

        Raises:
            DraftNotSupportedError: If this mode cannot save drafts
            RecipientAccessError: If a requested recipient is not eligible
        """
        if not self.policy.allow_draft:
            raise DraftNotSupportedError(
                f"{self.policy.name} messages cannot be saved as drafts"
            )

        data = self._current(data)
        if data.action == ComposeAction.CANCEL:
            self.logger.debug("Draft save skipped: cancel requested")
            return None

        requested = await self.validate(data)
        self.strategy.targets(requested, await self.eligible())

        message = self._build_message(data, MessageStatus.DRAFT, requested)
        message.id = existing_id if existing_id is not None else self.draft_id

        await self.services.store.persist(message, self._upload(data))
        self.draft_id = message.id

        log_event(
            "draft_saved",
            f"Draft {message.id} saved",
            message_id=message.id,
            course_id=message.course_id,
            user_id=message.sender_id,
        )
        return message.id

    def _outgoing(self, message: Message) -> Message:
        """The dispatched copy: signature appended, subject prefixed once."""
        outgoing = replace(message, attachments=list(message.attachments), mailto=list(message.mailto))
        outgoing = append_signature(outgoing, self._signatures_by_id)
        return prefix_subject(outgoing, self.context.course, self.context.config)

    async def _deliver(
        self,
        recipient: User,
        outgoing: Message,
        plain: str,
        html: str,
        archive: Optional[ArchiveDescriptor],
    ) -> Optional[DeliveryFailure]:
        reason = ""

        try:
            delivered = await self.services.mailer.deliver(
                recipient, self.acting_user, outgoing.subject, plain, html, archive
            )
        except (DeliveryError, InvalidEmailAddressError) as e:
            delivered = False
            reason = e.message

        if delivered:
            return None

        reason = reason or get_string("no_email", name=recipient.fullname, email=recipient.email)
        log_event(
            "delivery_failed",
            f"Delivery to user {recipient.id} failed",
            level="WARNING",
            recipient_id=recipient.id,
            message_id=outgoing.id,
            reason=reason,
        )
        return DeliveryFailure(recipient.id, recipient.email, reason)

    async def _send_receipt(
        self,
        outgoing: Message,
        plain: str,
        html: str,
        archive: Optional[ArchiveDescriptor],
    ) -> None:
        try:
            delivered = await self.services.mailer.deliver(
                self.acting_user, self.acting_user, outgoing.subject, plain, html, archive
            )
        except (DeliveryError, InvalidEmailAddressError) as e:
            self.logger.warning(f"Receipt for message {outgoing.id} failed: {e.message}")
            return

        if not delivered:
            self.logger.warning(f"Receipt for message {outgoing.id} was not accepted")

    def _draft_to_clean_up(self) -> Optional[int]:
        """The draft a fully delivered send supersedes, if any."""
        if self.draft_id is None:
            return None

        if self.draft_id == self.source_draft_id and not self.policy.cleanup_source_draft:
            return None

        return self.draft_id

    async def _cleanup_draft(self, draft_id: int) -> None:
        draft = await self.services.messages.find_by_id(draft_id, MessageStatus.DRAFT)
        if draft is None:
            self.logger.debug(f"Draft {draft_id} already gone")
            return

        await self.services.store.remove(draft)
        self.draft_id = None

    @async_log_call
    async def send(self, data: Optional[ComposeSubmission] = None) -> List[DeliveryFailure]:
        """Validate, store as sent and deliver to each recipient in turn.

        Returns one DeliveryFailure per recipient the mailer did not
        accept; the message stays stored as sent either way.

        Raises:
            ValidationError: If the subject or recipients are missing
            RecipientAccessError: If a requested recipient is not eligible
        """
        data = self._current(data)
        if data.action == ComposeAction.CANCEL:
            self.logger.debug("Send skipped: cancel requested")
            return []

        requested = await self.validate(data)
        recipients = self.strategy.targets(requested, await self.eligible())

        message = self._build_message(data, MessageStatus.SENT, requested)
        await self.services.store.persist(message, self._upload(data))
        self.last_message_id = message.id

        outgoing = self._outgoing(message)
        plain, html = render_bodies(outgoing)
        failures = []

        async with self.services.packager.package(
            message_area(message), self.acting_user, message.id
        ) as archive:
            for recipient in recipients:
                failure = await self._deliver(recipient, outgoing, plain, html, archive)
                if failure is not None:
                    failures.append(failure)

            if message.receipt:
                await self._send_receipt(outgoing, plain, html, archive)

        draft_id = self._draft_to_clean_up()
        if draft_id is not None and not failures:
            await self._cleanup_draft(draft_id)

        log_event(
            "message_sent",
            f"Message {message.id} sent to {len(recipients) - len(failures)} of {len(recipients)}",
            message_id=message.id,
            course_id=message.course_id,
            user_id=message.sender_id,
            recipients=len(recipients),
            failures=len(failures),
        )
        return failures
