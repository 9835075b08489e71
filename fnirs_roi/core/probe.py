"""
Probe describing the measurement geometry of an fNIRS recording.

The probe's link table lists one row per measurement:
    - 'source'    : source optode id (positive int)
    - 'detector'  : detector optode id (positive int)
    - 'type'      : signal type label (e.g. 'hbo', 'hbr')
    - 'hyperscan' : optional subject tag ('A' or 'B') for two-subject recordings

ROI probes built by ROIMaker reuse this class; their 'source' and 'detector'
cells hold tuples of ids and the table has an extra 'ROI' column.
"""

from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

LINK_COLUMNS = ['source', 'detector', 'type']


class Probe:
    """Channel (or ROI) layout of an fNIRS probe, compared by value."""

    def __init__(self, link: pd.DataFrame, optodes: Optional[pd.DataFrame] = None,
                 description: Optional[str] = None):
        """
        Args:
            link: Link table with at least 'source', 'detector' and 'type' columns
            optodes: Optional optode geometry table, carried along untouched
            description: Optional free-text description
        """
        if not isinstance(link, pd.DataFrame):
            raise TypeError(f"Probe link must be a DataFrame, not {type(link)}.")
        missing = [col for col in LINK_COLUMNS if col not in link.columns]
        if missing:
            raise ValueError(f"Probe link is missing required columns: {missing}")

        link = link.reset_index(drop=True).copy()
        for col in ('source', 'detector'):
            if link[col].dtype != object:
                link[col] = link[col].astype(np.int64)
        link['type'] = link['type'].astype(str)

        self._link = link
        self._optodes = None if optodes is None else optodes.reset_index(drop=True).copy()
        self.description = description

    @property
    def link(self) -> pd.DataFrame:
        """Copy of the link table."""
        return self._link.copy()

    @property
    def optodes(self) -> Optional[pd.DataFrame]:
        return None if self._optodes is None else self._optodes.copy()

    @property
    def n_channels(self) -> int:
        return len(self._link)

    @property
    def types(self) -> List[str]:
        """Distinct signal types in order of first appearance."""
        return list(pd.unique(self._link['type']))

    @property
    def is_hyperscan(self) -> bool:
        """True if the link carries both 'A' and 'B' tagged rows."""
        if 'hyperscan' not in self._link.columns:
            return False
        tags = set(self._link['hyperscan'].astype(str).str.upper())
        return 'A' in tags and 'B' in tags

    def hyperscan_offsets(self) -> Tuple[int, int]:
        """
        Source and detector id offsets between the 'B' and the 'A' subject.

        Returns:
            (min(source_B) - min(source_A), min(detector_B) - min(detector_A))
        """
        if not self.is_hyperscan:
            raise ValueError("Probe is not a hyperscan probe (needs rows tagged 'A' and 'B').")
        tags = self._link['hyperscan'].astype(str).str.upper()
        link_a = self._link[tags == 'A']
        link_b = self._link[tags == 'B']
        source_offset = int(link_b['source'].min() - link_a['source'].min())
        detector_offset = int(link_b['detector'].min() - link_a['detector'].min())
        return source_offset, detector_offset

    def with_link(self, link: pd.DataFrame) -> 'Probe':
        """New probe with the same optodes and description but a different link."""
        return Probe(link, optodes=self._optodes, description=self.description)

    def __eq__(self, other):
        if not isinstance(other, Probe):
            return NotImplemented
        if not self._link.equals(other._link):
            return False
        if self._optodes is None or other._optodes is None:
            return self._optodes is None and other._optodes is None
        return self._optodes.equals(other._optodes)

    def __repr__(self):
        kind = 'hyperscan ' if self.is_hyperscan else ''
        return f"Probe({kind}{self.n_channels} links, types={self.types})"
