"""
Core value types: probes, channel-space payloads and the error hierarchy.
"""

from .probe import Probe
from .data import ChannelPayload, Data, ChannelStats, ConnectivityStats
from .exceptions import (
    ROIError,
    ProbeTypeError,
    PreconditionError,
    ValidationError,
    DuplicateNameError,
    ProbeMismatchError,
    UnsupportedTypeError
)

__all__ = ['Probe', 'ChannelPayload', 'Data', 'ChannelStats', 'ConnectivityStats',
           'ROIError', 'ProbeTypeError', 'PreconditionError', 'ValidationError',
           'DuplicateNameError', 'ProbeMismatchError', 'UnsupportedTypeError']
