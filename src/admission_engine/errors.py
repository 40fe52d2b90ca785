"""Exception types raised by the admission engine."""


class AdmissionError(Exception):
    """Base class for admission engine errors."""

    pass


class ConfigurationError(AdmissionError):
    """Raised when the game setup or an arena status is malformed."""

    pass


class SnapshotMismatchError(AdmissionError):
    """Raised when a saved model snapshot does not fit the current game."""

    pass
