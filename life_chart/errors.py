"""
Error types raised by the life chart engine.
"""


class InvalidBirthMoment(ValueError):
    """The birth date/time does not exist on the calendar."""


class NarrativeUnavailable(RuntimeError):
    """The narrative collaborator timed out, failed, or returned an unusable payload."""
