"""
Autoregressive-prewhitened partial correlation for resting-state connectivity.

Each channel is whitened by its own AR model (order picked by BIC up to the
requested maximum), then partial correlations are computed between the
innovations, optionally with a robust bisquare-weighted covariance.
"""

import logging
from typing import List, Tuple, Union

import numpy as np
from scipy.signal import lfilter
from scipy.stats import t as t_dist

from fnirs_roi.core.data import Data, ConnectivityStats

logger = logging.getLogger(__name__)


def ar_partialcorr(data: Union[Data, np.ndarray], model_order: Union[int, str] = 20,
                   robust: bool = True) -> Tuple[np.ndarray, np.ndarray, int]:
    """
    Partial correlation between AR-whitened channels.

    Parameters
    ----------
    data : Data or np.ndarray
        Time series of shape (#samples, #channels). For Data, the sampling rate
        is taken from its time vector; for arrays it is 1.
    model_order : int or str, optional
        Maximum AR model order. A string "<k>x" means k times the sampling
        rate (e.g. "1x" at 10 Hz is 10). Default is 20.
    robust : bool, optional
        Use the bisquare-weighted covariance instead of the ordinary one.

    Returns
    -------
    R : np.ndarray
        (#channels, #channels) partial correlation matrix, ones on the diagonal.
    p : np.ndarray
        Two-sided p-values of R.
    dfe : int
        Degrees of freedom (number of samples).
    """
    if isinstance(data, Data):
        fs = data.fs
        y = data.data
    else:
        fs = 1.0
        y = np.asarray(data, dtype=np.float64)
    if y.ndim != 2:
        raise ValueError(f"data must be (#samples, #channels), got shape {y.shape}")

    pmax = parse_model_order(model_order, fs)
    yfilt, _ = innovations(y, pmax)

    if robust:
        cov = _robust_covariance(yfilt)
    else:
        cov = np.cov(yfilt, rowvar=False)

    R = _partial_from_covariance(cov)
    dfe = yfilt.shape[0]
    p = _partial_pvalues(R, dfe)
    logger.debug(f"ar_partialcorr: {y.shape[1]} channels, pmax={pmax}, robust={robust}")
    return R, p, dfe


def parse_model_order(model_order: Union[int, str], fs: float = 1.0) -> int:
    """Absolute AR order from an int or a "<k>x" multiple of the sampling rate."""
    if isinstance(model_order, str):
        text = model_order.strip().lower()
        if not text.endswith('x'):
            raise ValueError(f"Model order string must look like '<k>x', got '{model_order}'.")
        try:
            multiplier = float(text[:-1])
        except ValueError:
            raise ValueError(f"Model order string must look like '<k>x', got '{model_order}'.")
        order = int(round(multiplier * fs))
    else:
        order = int(model_order)
    if order < 1:
        raise ValueError(f"Model order must be at least 1, got {order}.")
    return order


def innovations(y: np.ndarray, pmax: int) -> Tuple[np.ndarray, List[np.ndarray]]:
    """
    Whiten each column of y with its own AR model.

    Parameters
    ----------
    y : np.ndarray
        (#samples, #channels) signals.
    pmax : int
        Largest AR order considered; the order of each channel is picked by BIC.

    Returns
    -------
    yfilt : np.ndarray
        Innovations (prediction errors), same shape as y.
    filters : list of np.ndarray
        Whitening filter [1, -a1, ..., -ap] per channel.
    """
    y = np.asarray(y, dtype=np.float64)
    n_samples = y.shape[0]
    if n_samples <= 2 * pmax:
        raise ValueError(f"Need more than {2 * pmax} samples for AR order {pmax}, got {n_samples}.")

    yfilt = np.zeros_like(y)
    filters = []
    for ch in range(y.shape[1]):
        signal = y[:, ch] - y[:, ch].mean()
        coefs = _fit_ar_bic(signal, pmax)
        b = np.concatenate([[1.0], -coefs])
        yfilt[:, ch] = lfilter(b, [1.0], signal)
        filters.append(b)
    return yfilt, filters


def _fit_ar_bic(signal: np.ndarray, pmax: int) -> np.ndarray:
    """Least-squares AR fit with the order minimizing BIC."""
    n_eff = len(signal) - pmax
    target = signal[pmax:]
    # lag k in column k-1
    lags = np.column_stack([signal[pmax - k:len(signal) - k] for k in range(1, pmax + 1)])

    best_bic = np.inf
    best_coefs = np.zeros(0)
    for order in range(1, pmax + 1):
        coefs, _, _, _ = np.linalg.lstsq(lags[:, :order], target, rcond=None)
        rss = np.sum((target - lags[:, :order] @ coefs) ** 2)
        if rss <= 0:
            return coefs
        bic = n_eff * np.log(rss / n_eff) + order * np.log(n_eff)
        if bic < best_bic:
            best_bic = bic
            best_coefs = coefs
    return best_coefs


def _robust_covariance(y: np.ndarray, n_iter: int = 50) -> np.ndarray:
    """Covariance with samples down-weighted by a bisquare on their Mahalanobis distance."""
    w = np.ones(y.shape[0])
    cov = np.cov(y, rowvar=False)
    for _ in range(n_iter):
        mu = w @ y / np.sum(w)
        centered = y - mu
        cov = (w[:, np.newaxis] * centered).T @ centered / np.sum(w)
        dist = np.sqrt(np.einsum('ij,jk,ik->i', centered, np.linalg.pinv(cov), centered))
        sigma = 1.4826 * np.median(dist)
        if sigma == 0:
            break
        r = dist / (sigma * 4.685)  # 4.685 is a tuning constant
        w_new = ((1 - r**2) * (r < 1)) ** 2
        if np.allclose(w_new, w):
            break
        w = w_new
    return cov


def _partial_from_covariance(cov: np.ndarray) -> np.ndarray:
    cov = np.atleast_2d(cov)
    precision = np.linalg.pinv(cov)
    scale = np.sqrt(np.diag(precision))
    with np.errstate(divide='ignore', invalid='ignore'):
        R = -precision / np.outer(scale, scale)
    np.fill_diagonal(R, 1.0)
    return np.clip(R, -1.0, 1.0)


def _partial_pvalues(R: np.ndarray, n_samples: int) -> np.ndarray:
    # partial correlation controlling for k-2 channels has n-k degrees of freedom
    df = n_samples - R.shape[0]
    if df <= 0:
        return np.full_like(R, np.nan)
    with np.errstate(divide='ignore', invalid='ignore'):
        t_stat = R * np.sqrt(df / (1 - R**2))
    p = 2 * t_dist.sf(np.abs(t_stat), df)
    np.fill_diagonal(p, 0.0)
    return p


def connectivity_from_data(data: Data, model_order: Union[int, str] = 20, robust: bool = True,
                           condition: str = 'rest') -> ConnectivityStats:
    """Single-condition ConnectivityStats for a Data payload, over the same probe."""
    R, _, dfe = ar_partialcorr(data, model_order=model_order, robust=robust)
    return ConnectivityStats(probe=data.probe, R=R, conditions=[condition], dfe=dfe,
                             description=data.description)
