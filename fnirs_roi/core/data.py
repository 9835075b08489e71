"""
Channel-space payloads consumed by ROIMaker.apply.

Three variants share the ChannelPayload base:
    - Data              : time series, (#samples x #channels)
    - ChannelStats      : regression betas with their covariance
    - ConnectivityStats : per-condition correlation matrices

Each payload records the probe it was computed against. Transforms never
modify a payload; they build a new one with dataclasses.replace.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd

from fnirs_roi.core.probe import Probe


@dataclass(eq=False)
class ChannelPayload:
    """Base class of the payload variants."""
    probe: Probe


@dataclass(eq=False)
class Data(ChannelPayload):
    """Multichannel time series; one column per probe link row."""
    data: np.ndarray = None
    time: np.ndarray = None
    stimulus: dict = field(default_factory=dict)
    description: Optional[str] = None

    def __post_init__(self):
        self.data = np.asarray(self.data, dtype=np.float64)
        if self.data.ndim == 1:
            self.data = self.data[:, np.newaxis]
        if self.time is None:
            self.time = np.arange(self.data.shape[0], dtype=np.float64)
        self.time = np.asarray(self.time, dtype=np.float64)

    @property
    def fs(self) -> float:
        """Sampling rate (Hz) inferred from the time vector."""
        if len(self.time) < 2:
            return 1.0
        return float(1.0 / np.median(np.diff(self.time)))


@dataclass(eq=False)
class ChannelStats(ChannelPayload):
    """
    First-level regression statistics.

    ``variables`` has one row per beta entry, with the link columns plus a
    'cond' column. Entries are ordered condition by condition, each block
    following the probe link order.
    """
    variables: pd.DataFrame = None
    beta: np.ndarray = None
    covb: np.ndarray = None
    dfe: float = np.nan
    description: Optional[str] = None

    def __post_init__(self):
        self.beta = np.asarray(self.beta, dtype=np.float64)
        self.covb = np.asarray(self.covb, dtype=np.float64)

    @property
    def conditions(self) -> List[str]:
        """Conditions in order of first appearance."""
        return list(pd.unique(self.variables['cond']))


@dataclass(eq=False)
class ConnectivityStats(ChannelPayload):
    """Per-condition correlation matrices, (#channels x #channels x #conditions)."""
    R: np.ndarray = None
    conditions: List[str] = field(default_factory=list)
    ZstdErr: Optional[np.ndarray] = None
    dfe: float = np.nan
    description: Optional[str] = None

    def __post_init__(self):
        self.R = np.asarray(self.R, dtype=np.float64)
        if self.R.ndim == 2:
            self.R = self.R[:, :, np.newaxis]
        if self.ZstdErr is not None:
            self.ZstdErr = np.asarray(self.ZstdErr, dtype=np.float64)
            if self.ZstdErr.ndim == 2:
                self.ZstdErr = self.ZstdErr[:, :, np.newaxis]
        self.conditions = list(self.conditions)
        if len(self.conditions) != self.R.shape[2]:
            raise ValueError(
                f"R has {self.R.shape[2]} condition slices but {len(self.conditions)} condition names were given."
            )
        if self.ZstdErr is not None and self.ZstdErr.shape != self.R.shape:
            raise ValueError(f"ZstdErr has shape {self.ZstdErr.shape}, expected {self.R.shape}.")

    @property
    def Z(self) -> np.ndarray:
        """Fisher z-transform of R."""
        with np.errstate(divide='ignore', invalid='ignore'):
            return np.arctanh(self.R)
