"""
Column-wise z-scoring of multichannel fNIRS signals.

Channel amplitudes are not comparable in raw units, so series are brought to
zero mean and unit variance per channel before being averaged into ROIs.
"""

import numpy as np
from scipy.stats import zscore


def zscore_channels(data: np.ndarray) -> np.ndarray:
    """
    Z-score each channel (column) across samples.

    Parameters
    ----------
    data : np.ndarray
        Array of shape (#samples, #channels).

    Returns
    -------
    normalized : np.ndarray
        Array of the same shape with zero mean and unit sample standard
        deviation (ddof=1) per column. Constant columns, and every column of
        a single-sample series, are returned as zeros; columns containing NaN
        stay NaN.
    """
    data = np.asarray(data, dtype=np.float64)
    if data.ndim != 2:
        raise ValueError(f"data must be (#samples, #channels), got shape {data.shape}")
    if data.shape[0] < 2:
        return np.where(np.isnan(data), np.nan, 0.0)

    with np.errstate(divide='ignore', invalid='ignore'):
        normalized = zscore(data, axis=0, ddof=1)

    # flat columns give rounding noise over rounding noise; NaN columns compare False
    sigma = data.std(axis=0, ddof=1)
    constant = (np.ptp(data, axis=0) == 0) | (sigma <= np.finfo(np.float64).eps * np.abs(data.mean(axis=0)))
    normalized[:, constant] = 0.0
    return normalized
