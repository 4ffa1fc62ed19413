"""Resolution of the users a viewer may message in a course."""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional

from quickmail.core.models import Group, SendContext, User
from quickmail.core.services import PersonDirectory
from quickmail.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RecipientOption:
    """A filter the compose surface can offer (select all of a role or group)."""

    kind: str  # "role" or "group"
    key: str
    label: str
    member_ids: FrozenSet[int] = frozenset()


@dataclass
class EligibleRecipients:
    """Result of a resolution: who may be messaged, and why."""

    users: List[User] = field(default_factory=list)
    roles_by_user: Dict[int, FrozenSet[str]] = field(default_factory=dict)
    groups_by_user: Dict[int, FrozenSet[int]] = field(default_factory=dict)
    visible_groups: List[Group] = field(default_factory=list)
    global_access: bool = False

    def __post_init__(self):
        self._by_id = {user.id: user for user in self.users}

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._by_id

    def __len__(self) -> int:
        return len(self.users)

    @property
    def ids(self) -> FrozenSet[int]:
        return frozenset(self._by_id)

    def get(self, user_id: int) -> Optional[User]:
        return self._by_id.get(user_id)

    def outside(self, user_ids: Iterable[int]) -> List[int]:
        """Ids from ``user_ids`` that are not eligible, in submitted order."""
        return [user_id for user_id in user_ids if user_id not in self._by_id]

    def pick(self, user_ids: Iterable[int]) -> List[User]:
        """Eligible users for ``user_ids``, in submitted order, without repeats."""
        seen = set()
        picked = []
        for user_id in user_ids:
            if user_id in self._by_id and user_id not in seen:
                seen.add(user_id)
                picked.append(self._by_id[user_id])

        return picked

    def options(self) -> List[RecipientOption]:
        """Role and group filters, each listing the eligible members it selects."""
        options = []

        role_names = sorted({name for names in self.roles_by_user.values() for name in names})
        for role in role_names:
            members = frozenset(
                user_id for user_id, names in self.roles_by_user.items() if role in names
            )
            options.append(RecipientOption("role", role, role, members))

        for group in self.visible_groups:
            members = frozenset(
                user_id for user_id, groups in self.groups_by_user.items() if group.id in groups
            )
            if members:
                options.append(RecipientOption("group", str(group.id), group.name, members))

        return options


class RecipientResolver:
    """Applies the role allow-list and group visibility to course enrolments.

    A candidate is eligible when at least one of their roles is on the
    course's allow-list and either the course has no groups at all, or
    they share a group the viewer can see. Viewers without the
    see-all-groups right see only their own groups; a viewer in no group
    sees none, which excludes every candidate in a grouped course.
    """

    def __init__(self, directory: PersonDirectory):
        self.directory = directory

    async def resolve(self, context: SendContext) -> EligibleRecipients:
        course = context.course
        viewer = context.acting_user
        allowed_roles = set(context.config.role_selection)

        all_groups = await self.directory.get_groups(course)
        global_access = not all_groups

        if global_access:
            visible_groups = []
        elif await self.directory.can_see_all_groups(course, viewer):
            visible_groups = list(all_groups)
        else:
            visible_groups = list(await self.directory.get_user_groups(course, viewer))

        visible_ids = {group.id for group in visible_groups}

        users = []
        roles_by_user = {}
        groups_by_user = {}

        for candidate in await self.directory.get_enrolled_users(course):
            if candidate.id == viewer.id:
                continue

            matched_roles = frozenset(
                role.shortname for role in candidate.roles if role.shortname in allowed_roles
            )
            if not matched_roles:
                continue

            matched_groups = frozenset(candidate.group_ids) & visible_ids
            if not global_access and not matched_groups:
                continue

            users.append(candidate)
            roles_by_user[candidate.id] = matched_roles
            groups_by_user[candidate.id] = matched_groups

        users.sort(key=lambda user: user.sort_key)

        logger.debug(
            f"Resolved {len(users)} eligible recipient(s) for user {viewer.id} "
            f"in course {course.id} (global_access={global_access})"
        )

        return EligibleRecipients(
            users=users,
            roles_by_user=roles_by_user,
            groups_by_user=groups_by_user,
            visible_groups=visible_groups,
            global_access=global_access,
        )
