"""
Processing module for ROI aggregation.
Contains the ROI registry/engine, the per-payload projections and batch processing.
"""

from .roi_maker import ROIMaker
from .projection import project_payload, project_series, project_channel_stats, project_connectivity
from .batch_processor import BatchROIProcessor
__all__ = ['ROIMaker', 'BatchROIProcessor', 'project_payload', 'project_series',
           'project_channel_stats', 'project_connectivity']
