"""
Plots of ROI-space series and connectivity.
"""

from .plots import plot_roi_series, plot_connectivity

__all__ = ['plot_roi_series', 'plot_connectivity']
