"""
Signal conditioning applied before ROI averaging.
"""

from .normalization import zscore_channels

__all__ = ['zscore_channels']
