"""Where a composer's recipients come from."""

from abc import ABC, abstractmethod
from typing import List, Sequence

from quickmail.core.models import Message, SendContext, User
from quickmail.core.recipients import EligibleRecipients, RecipientResolver
from quickmail.core.services import RECEIVE_ASK_INSTRUCTOR, CapabilityChecker, PersonDirectory
from quickmail.utils.errors import RecipientAccessError
from quickmail.utils.logging import get_logger

logger = get_logger(__name__)


class RecipientStrategy(ABC):
    """Loads a composer's candidate recipients and turns a submission into targets."""

    selectable = True

    @abstractmethod
    async def load(self, context: SendContext) -> EligibleRecipients:
        pass

    def preselected(self, eligible: EligibleRecipients) -> List[int]:
        return []

    def requested_ids(self, submitted: Sequence[int], eligible: EligibleRecipients) -> List[int]:
        """Recipient ids a submission asks for, deduplicated in order."""
        return list(dict.fromkeys(submitted))

    def targets(self, requested: Sequence[int], eligible: EligibleRecipients) -> List[User]:
        """Users to deliver to.

        Raises:
            RecipientAccessError: If any requested id is not eligible
        """
        outside = eligible.outside(requested)
        if outside:
            logger.warning(f"Submission names ineligible recipients: {outside}")
            raise RecipientAccessError(
                f"Not permitted to message user(s) {outside}",
                details={"user_ids": outside},
            )

        return eligible.pick(requested)


class OpenSelectionStrategy(RecipientStrategy):
    """The sender picks any subset of the eligible participants."""

    def __init__(self, resolver: RecipientResolver):
        self.resolver = resolver

    async def load(self, context: SendContext) -> EligibleRecipients:
        return await self.resolver.resolve(context)


class FromRecordStrategy(OpenSelectionStrategy):
    """Like open selection, preselecting the recipients of a stored message."""

    def __init__(self, resolver: RecipientResolver, record: Message):
        super().__init__(resolver)
        self.record = record

    def preselected(self, eligible: EligibleRecipients) -> List[int]:
        return list(self.record.mailto)


class FixedCapabilityStrategy(RecipientStrategy):
    """Everyone in the course holding a capability; the sender cannot choose.

    Submitted recipient ids are ignored.
    """

    selectable = False

    def __init__(
        self,
        directory: PersonDirectory,
        capabilities: CapabilityChecker,
        capability: str = RECEIVE_ASK_INSTRUCTOR,
    ):
        self.directory = directory
        self.capabilities = capabilities
        self.capability = capability

    async def load(self, context: SendContext) -> EligibleRecipients:
        holders = []
        for user in await self.directory.get_enrolled_users(context.course):
            if user.id == context.acting_user.id:
                continue
            if await self.capabilities.has_capability(self.capability, context.course, user):
                holders.append(user)

        holders.sort(key=lambda user: user.sort_key)
        logger.debug(
            f"{len(holders)} user(s) hold {self.capability} in course {context.course.id}"
        )

        return EligibleRecipients(users=holders, global_access=True)

    def preselected(self, eligible: EligibleRecipients) -> List[int]:
        return [user.id for user in eligible.users]

    def requested_ids(self, submitted: Sequence[int], eligible: EligibleRecipients) -> List[int]:
        return [user.id for user in eligible.users]
