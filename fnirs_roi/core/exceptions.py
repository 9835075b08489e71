"""
Exception classes for fnirs_roi.

All errors raised by the ROI registry and the projection engine derive from
ROIError. Where an error also has a natural builtin meaning (a wrong type, an
invalid value) it inherits from the builtin as well, so callers can catch
either.
"""


class ROIError(Exception):
    """Base class for fnirs_roi specific errors."""

    pass


class ProbeTypeError(ROIError, TypeError):
    """The object given as channel probe is not a Probe."""

    pass


class PreconditionError(ROIError):
    """Operation attempted before the registry was set up for it."""

    pass


class ValidationError(ROIError, ValueError):
    """ROI definition references channels missing from the channel probe."""

    pass


class DuplicateNameError(ROIError, ValueError):
    """ROI name is already used in the registry."""

    pass


class ProbeMismatchError(ROIError, ValueError):
    """Payload was computed against a different probe than the registry's."""

    pass


class UnsupportedTypeError(ROIError, TypeError):
    """Payload is not one of the supported variants."""

    pass
