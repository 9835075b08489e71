"""
Reading ROI definitions from tables.
"""

from .roi_table import (
    read_roi_table,          # Main public function
    _clean_roi_table         # Internal but needed by tests
)

# Explicit exports
__all__ = [
    'read_roi_table'
]
