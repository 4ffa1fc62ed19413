"""Composer construction: wiring of collaborators and the five compose modes."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from quickmail.core.attachments import AttachmentPackager, LocalFileArea
from quickmail.core.database import (
    CourseConfigRepository,
    EngineManager,
    MessageRepository,
    SignatureRepository,
)
from quickmail.core.mail import SMTPMailer
from quickmail.core.models import (
    NO_SIGNATURE,
    CourseConfig,
    Message,
    MessageStatus,
    SendContext,
    User,
)
from quickmail.core.recipients import RecipientResolver
from quickmail.core.services import (
    CAN_ASK_INSTRUCTOR,
    CAN_SEND,
    CapabilityChecker,
    FileArea,
    Mailer,
    PersonDirectory,
    QuestionAttemptSource,
)
from quickmail.core.store import MessageStore
from quickmail.utils.config_manager import ConfigManager, get_config_manager
from quickmail.utils.errors import (
    ConfigurationError,
    CourseNotFoundError,
    PermissionDeniedError,
    QuestionAttemptNotFoundError,
)
from quickmail.utils.logging import get_logger, init_logging

from .composer import ComposeDefaults, Composer, ComposerPolicy
from .question import question_body, question_subject
from .strategies import FixedCapabilityStrategy, FromRecordStrategy, OpenSelectionStrategy
from .strings import get_string
from .transforms import forward_subject

logger = get_logger(__name__)


OPEN_SELECTION = ComposerPolicy(
    name="compose",
    required_capability=CAN_SEND,
    header_key="composenew",
    honour_allow_students=True,
)

ASK_INSTRUCTOR = ComposerPolicy(
    name="askinstructor",
    required_capability=CAN_ASK_INSTRUCTOR,
    header_key="askinstructor",
    allow_draft=False,
    no_forward_default=True,
)

DRAFT = ComposerPolicy(
    name="draft",
    required_capability=CAN_SEND,
    header_key="composenew",
    cleanup_source_draft=True,
    honour_allow_students=True,
)

FORWARD = ComposerPolicy(
    name="forward",
    required_capability=CAN_SEND,
    header_key="forward",
    subject_decorator=lambda subject: forward_subject(subject, get_string("fwd")),
    honour_allow_students=True,
)

QUIZ_QUESTION = ComposerPolicy(
    name="question",
    required_capability=CAN_ASK_INSTRUCTOR,
    header_key="askinstructor",
    allow_draft=False,
    no_forward_default=True,
)


@dataclass
class ComposeServices:
    """Everything a composer talks to."""

    directory: PersonDirectory
    capabilities: CapabilityChecker
    messages: MessageRepository
    signatures: SignatureRepository
    course_configs: CourseConfigRepository
    file_area: FileArea
    mailer: Mailer
    packager: AttachmentPackager
    questions: Optional[QuestionAttemptSource] = None
    course_defaults: Optional[CourseConfig] = None

    def __post_init__(self):
        if self.course_defaults is None:
            self.course_defaults = get_config_manager().get_course_defaults()

        self.store = MessageStore(self.messages, self.file_area)
        self.resolver = RecipientResolver(self.directory)

    async def load_course_config(self, course_id: int) -> CourseConfig:
        """Stored course settings over the site defaults."""
        return await self.course_configs.load(course_id, self.course_defaults)


def build_services(
    directory: PersonDirectory,
    capabilities: CapabilityChecker,
    questions: Optional[QuestionAttemptSource] = None,
    config_manager: Optional[ConfigManager] = None,
    engine_manager: Optional[EngineManager] = None,
) -> ComposeServices:
    """Assemble services from the application configuration."""
    config_manager = config_manager or get_config_manager()
    config = config_manager.config
    init_logging().set_level(config.logging.log_level)

    engine_manager = engine_manager or EngineManager(
        Path(config.storage.database_path).expanduser()
    )
    file_area = LocalFileArea(Path(config.storage.files_path).expanduser())

    return ComposeServices(
        directory=directory,
        capabilities=capabilities,
        messages=MessageRepository(engine_manager),
        signatures=SignatureRepository(engine_manager),
        course_configs=CourseConfigRepository(engine_manager),
        file_area=file_area,
        mailer=SMTPMailer(config.mail, max_retries=config.mail.max_retries),
        packager=AttachmentPackager(file_area, Path(config.storage.temp_path).expanduser()),
        questions=questions,
        course_defaults=config_manager.get_course_defaults(),
    )


async def _may_use(services: ComposeServices, policy: ComposerPolicy, context: SendContext) -> bool:
    if await services.capabilities.has_capability(
        policy.required_capability, context.course, context.acting_user
    ):
        return True

    return policy.honour_allow_students and context.config.allow_students


async def _send_context(services: ComposeServices, course_id: int, acting_user: User) -> SendContext:
    course = await services.directory.get_course(course_id)
    if course is None:
        raise CourseNotFoundError(f"No course with id {course_id}", details={"course_id": course_id})

    config = await services.load_course_config(course_id)
    return SendContext(acting_user=acting_user, course=course, config=config)


async def _build(
    services: ComposeServices,
    policy: ComposerPolicy,
    strategy_factory,
    course_id: int,
    acting_user: User,
    signature_id: Optional[int] = None,
    source: Optional[Message] = None,
    defaults: Optional[ComposeDefaults] = None,
) -> Composer:
    context = await _send_context(services, course_id, acting_user)

    if not await _may_use(services, policy, context):
        raise PermissionDeniedError(
            f"User {acting_user.id} may not use the {policy.name} composer",
            details={"course_id": course_id, "capability": policy.required_capability},
        )

    signatures = await services.signatures.find_all(acting_user.id)

    if signature_id is None:
        if source is not None:
            signature_id = source.signature_id
        else:
            signature_id = next((sig.id for sig in signatures if sig.is_default), NO_SIGNATURE)

    logger.debug(f"Built {policy.name} composer for user {acting_user.id} in course {course_id}")

    return Composer(
        services=services,
        policy=policy,
        strategy=strategy_factory(),
        context=context,
        signatures=signatures,
        signature_id=signature_id,
        source=source,
        defaults=defaults,
    )


async def open_selection(
    services: ComposeServices, course_id: int, acting_user: User, signature_id: Optional[int] = None
) -> Composer:
    """Composer where the sender picks recipients among eligible participants."""
    return await _build(
        services,
        OPEN_SELECTION,
        lambda: OpenSelectionStrategy(services.resolver),
        course_id,
        acting_user,
        signature_id,
    )


async def ask_instructor(
    services: ComposeServices, course_id: int, acting_user: User, signature_id: Optional[int] = None
) -> Composer:
    """Composer addressing everyone who receives ask-instructor mail."""
    return await _build(
        services,
        ASK_INSTRUCTOR,
        lambda: FixedCapabilityStrategy(services.directory, services.capabilities),
        course_id,
        acting_user,
        signature_id,
    )


async def _owned_record(
    services: ComposeServices, record_id: int, status: MessageStatus, acting_user: User
) -> Message:
    record = await services.store.load(record_id, status)

    if record.sender_id != acting_user.id:
        raise PermissionDeniedError(
            f"Message {record_id} belongs to another user",
            details={"message_id": record_id, "status": status.value},
        )

    return record


async def from_draft(
    services: ComposeServices, draft_id: int, acting_user: User, signature_id: Optional[int] = None
) -> Composer:
    """Composer resuming one of the acting user's drafts."""
    record = await _owned_record(services, draft_id, MessageStatus.DRAFT, acting_user)

    return await _build(
        services,
        DRAFT,
        lambda: FromRecordStrategy(services.resolver, record),
        record.course_id,
        acting_user,
        signature_id,
        source=record,
    )


async def forward(
    services: ComposeServices, log_id: int, acting_user: User, signature_id: Optional[int] = None
) -> Composer:
    """Composer forwarding one of the acting user's sent messages.

    Raises:
        PermissionDeniedError: If the message is owned by someone else or
            was sent with the no-forward flag
    """
    record = await _owned_record(services, log_id, MessageStatus.SENT, acting_user)

    if record.no_forward:
        raise PermissionDeniedError(
            f"Message {log_id} may not be forwarded",
            details={"message_id": log_id},
        )

    return await _build(
        services,
        FORWARD,
        lambda: FromRecordStrategy(services.resolver, record),
        record.course_id,
        acting_user,
        signature_id,
        source=record,
    )


async def quiz_question(
    services: ComposeServices,
    attempt_id: int,
    slot: int,
    acting_user: User,
    signature_id: Optional[int] = None,
) -> Composer:
    """Ask-instructor composer pre-filled from a question attempt."""
    if services.questions is None:
        raise ConfigurationError("No question attempt source configured")

    attempt = await services.questions.get_attempt(attempt_id, slot)
    if attempt is None:
        raise QuestionAttemptNotFoundError(
            f"No question attempt {attempt_id} at slot {slot}",
            details={"attempt_id": attempt_id, "slot": slot},
        )

    defaults = ComposeDefaults(
        subject=question_subject(attempt.owner, attempt),
        body=question_body(attempt, acting_user),
    )

    return await _build(
        services,
        QUIZ_QUESTION,
        lambda: FixedCapabilityStrategy(services.directory, services.capabilities),
        attempt.course_id,
        acting_user,
        signature_id,
        defaults=defaults,
    )


async def select_composer(
    services: ComposeServices,
    course_id: int,
    acting_user: User,
    required: bool = True,
    signature_id: Optional[int] = None,
) -> Optional[Composer]:
    """Pick the broadest composer the user may use in the course.

    Open selection when they can message participants, else ask-instructor
    when they can message the instructors, else PermissionDeniedError (or
    None when ``required`` is False).
    """
    context = await _send_context(services, course_id, acting_user)

    if await _may_use(services, OPEN_SELECTION, context):
        return await open_selection(services, course_id, acting_user, signature_id)

    if await _may_use(services, ASK_INSTRUCTOR, context):
        return await ask_instructor(services, course_id, acting_user, signature_id)

    if required:
        raise PermissionDeniedError(
            f"User {acting_user.id} may not send mail in course {course_id}",
            details={"course_id": course_id},
        )

    return None
