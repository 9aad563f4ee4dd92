"""Error kinds raised by the epicrop simulator.

All of them subclass ValueError so callers that already guard input
validation with ``except ValueError`` keep working.
"""


class EpicropError(Exception):
    """Base class for every error raised by epicrop."""


class InputMismatchError(EpicropError, ValueError):
    """Weather series does not cover the requested horizon, or has gaps."""


class InvalidParameterError(EpicropError, ValueError):
    """A rate, period or threshold parameter is out of its valid range."""


class DataQualityError(EpicropError, ValueError):
    """Missing or non-finite weather values reached the simulation loop."""
