"""Error taxonomy for the smart stereo factor.

A degenerate landmark is not an error: it yields a zero-information factor.
Everything here is fatal for the single call that raised it.
"""


class SmartFactorError(RuntimeError):
    """Base class for all smart factor failures."""


class SizeMismatch(SmartFactorError, ValueError):
    """Per-view arrays (measurements, keys, calibrations, cameras) disagree in length."""


class UnsupportedMode(SmartFactorError, ValueError):
    """Requested linearization mode is not implemented."""


class MissingKeyError(SmartFactorError, KeyError):
    """Estimate store has no value for a requested key."""


class CheiralityError(SmartFactorError):
    """Landmark lies behind a camera and the factor is configured to throw."""
