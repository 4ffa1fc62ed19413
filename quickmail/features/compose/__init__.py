"""Message composition feature module.

Public API:
    select_composer() - Pick the broadest composer a user may use in a course
    open_selection(), ask_instructor(), from_draft(), forward(),
    quiz_question() - Build a composer for one specific mode
    Composer - Validates, stores and dispatches one message
    ComposeSubmission - Submitted form state handed to Composer.submit()

Example:
    >>> services = build_services(directory, capabilities)
    >>> composer = await select_composer(services, course_id=7, acting_user=user)
    >>> view = await composer.get_compose_view()
    >>> composer.submit(ComposeSubmission(subject="Hi", body="...", mailto=[3, 4]))
    >>> outcome = await composer.process()
"""

from .composer import (
    ComposeAction,
    ComposeDefaults,
    ComposeOutcome,
    Composer,
    ComposerPolicy,
    ComposeSubmission,
    ComposeView,
)
from .factory import (
    ComposeServices,
    ask_instructor,
    build_services,
    forward,
    from_draft,
    open_selection,
    quiz_question,
    select_composer,
)
from .strategies import (
    FixedCapabilityStrategy,
    FromRecordStrategy,
    OpenSelectionStrategy,
    RecipientStrategy,
)

__all__ = [
    "ComposeAction",
    "ComposeDefaults",
    "ComposeOutcome",
    "ComposeServices",
    "ComposeSubmission",
    "ComposeView",
    "Composer",
    "ComposerPolicy",
    "FixedCapabilityStrategy",
    "FromRecordStrategy",
    "OpenSelectionStrategy",
    "RecipientStrategy",
    "ask_instructor",
    "build_services",
    "forward",
    "from_draft",
    "open_selection",
    "quiz_question",
    "select_composer",
]
