"""
Resting-state functional connectivity estimators.
"""

from .ar_partialcorr import ar_partialcorr, connectivity_from_data, innovations, parse_model_order

__all__ = ['ar_partialcorr', 'connectivity_from_data', 'innovations', 'parse_model_order']
