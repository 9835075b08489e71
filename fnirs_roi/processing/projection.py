"""
Projection of channel-space payloads into ROI space.

Given the (#channels x #ROI) averaging matrix P built by ROIMaker:
    - Data              : zscore(data) @ P
    - ChannelStats      : K.T @ beta and K.T @ covb @ K, with K = kron(I_ncond, P)
    - ConnectivityStats : P.T @ R @ P per condition, NaN-aware

Connectivity NaN policy: NaN entries are treated as zero contribution. An ROI
pair is reported if at least one contributing channel pair was valid, and is
NaN only when every contributing pair was NaN. The reported value is the
weighted sum over the valid pairs; it is not renormalized by their count.
"""

import dataclasses
import functools
import logging

import numpy as np
import pandas as pd

from fnirs_roi.core.data import ChannelPayload, Data, ChannelStats, ConnectivityStats
from fnirs_roi.core.exceptions import UnsupportedTypeError
from fnirs_roi.core.probe import Probe
from fnirs_roi.preprocessing.normalization import zscore_channels

logger = logging.getLogger(__name__)


def project_series(data: Data, projmat: np.ndarray, roi_probe: Probe) -> Data:
    """Z-score each channel, then average channels into ROIs."""
    if data.data.shape[1] != projmat.shape[0]:
        raise ValueError(
            f"Data has {data.data.shape[1]} channels but the projection expects {projmat.shape[0]}."
        )
    roi_data = zscore_channels(data.data) @ projmat
    return dataclasses.replace(data, probe=roi_probe, data=roi_data,
                               time=data.time.copy(), stimulus=dict(data.stimulus))


def project_channel_stats(stats: ChannelStats, projmat: np.ndarray, roi_probe: Probe) -> ChannelStats:
    """Propagate betas and their covariance through the condition-expanded projection."""
    conditions = stats.conditions
    num_cond = len(conditions)
    cond_projmat = np.kron(np.eye(num_cond), projmat)

    if stats.beta.shape[0] != cond_projmat.shape[0]:
        raise ValueError(
            f"beta has {stats.beta.shape[0]} entries, expected {cond_projmat.shape[0]} "
            f"({projmat.shape[0]} channels x {num_cond} conditions)."
        )

    beta = cond_projmat.T @ stats.beta
    covb = cond_projmat.T @ stats.covb @ cond_projmat

    roi_link = roi_probe.link
    variables = pd.concat([roi_link] * num_cond, ignore_index=True)
    variables['cond'] = np.repeat(np.asarray(conditions, dtype=object), len(roi_link))

    return dataclasses.replace(stats, probe=roi_probe, variables=variables, beta=beta, covb=covb)


def _nan_aware_bilinear(tensor: np.ndarray, projmat: np.ndarray) -> np.ndarray:
    """P.T @ X @ P for each slice of X; entries with no valid contribution become NaN."""
    valid = ~np.isnan(tensor)
    filled = np.where(valid, tensor, 0.0)

    num_roi = projmat.shape[1]
    out = np.zeros((num_roi, num_roi, tensor.shape[2]))
    valid_roi = np.zeros_like(out)
    for j in range(tensor.shape[2]):
        out[:, :, j] = projmat.T @ filled[:, :, j] @ projmat
        valid_roi[:, :, j] = projmat.T @ valid[:, :, j].astype(np.float64) @ projmat

    out[valid_roi == 0] = np.nan
    return out


def project_connectivity(stats: ConnectivityStats, projmat: np.ndarray,
                         roi_probe: Probe) -> ConnectivityStats:
    """Bilinear projection of the correlation (and standard error) matrices."""
    if stats.R.shape[0] != projmat.shape[0] or stats.R.shape[1] != projmat.shape[0]:
        raise ValueError(
            f"R has shape {stats.R.shape} but the projection expects {projmat.shape[0]} channels."
        )

    roi_r = _nan_aware_bilinear(stats.R, projmat)
    roi_err = None
    if stats.ZstdErr is not None:
        roi_err = _nan_aware_bilinear(stats.ZstdErr, projmat)

    return dataclasses.replace(stats, probe=roi_probe, R=roi_r, ZstdErr=roi_err,
                               conditions=list(stats.conditions))


@functools.singledispatch
def project_payload(payload, projmat: np.ndarray, roi_probe: Probe) -> ChannelPayload:
    """
    Project a single payload into ROI space.

    Raises:
        UnsupportedTypeError: if the payload is not Data, ChannelStats or ConnectivityStats
    """
    raise UnsupportedTypeError(f"Type {type(payload).__name__} not implemented.")


project_payload.register(Data, project_series)
project_payload.register(ChannelStats, project_channel_stats)
project_payload.register(ConnectivityStats, project_connectivity)
