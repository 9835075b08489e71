"""
fnirs_roi - Region-of-interest averaging for fNIRS data, statistics and connectivity
"""

from . import core, preprocessing, processing, read, sfc, viz
from .core import Probe, Data, ChannelStats, ConnectivityStats
from .processing import ROIMaker

__version__ = "0.1.0"
__all__ = ['core', 'preprocessing', 'processing', 'read', 'sfc', 'viz',
           'Probe', 'Data', 'ChannelStats', 'ConnectivityStats', 'ROIMaker']
