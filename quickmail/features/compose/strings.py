"""User-facing strings for the composer."""

STRINGS = {
    "composenew": "Compose New Email",
    "askinstructor": "Ask an Instructor",
    "forward": "Forward",
    "fwd": "Fwd",
    "question_in_quiz": "Question {slot} in {quiz}",
    "question_generic": "Question {slot}",
    "withregardtoq": "With regard to the question:",
    "lastresponse": "{name}'s last response was:",
    "viewattempt": "View the original attempt",
    "no_email": "Could not email {name} ({email})",
}


def get_string(key: str, **params) -> str:
    """Look up a string and fill in its placeholders.

    Raises:
        KeyError: If the key is unknown
    """
    template = STRINGS[key]

    return template.format(**params) if params else template
