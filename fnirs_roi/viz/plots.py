import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns

from fnirs_roi.core.data import Data, ConnectivityStats


def _roi_labels(link):
    """'name type' labels for ROI probe rows, with the subject tag for hyperscan probes."""
    labels = []
    for _, row in link.iterrows():
        label = f"{row['ROI']} {row['type']}"
        if 'hyperscan' in link.columns:
            label = f"{label} ({row['hyperscan']})"
        labels.append(label)
    return labels


def plot_roi_series(data: Data, title="ROI Signals", subject=None, y_lim=None):
    """
    Plot each ROI in its own panel, one line per signal type

    Parameters:
    ----------
    data : Data
        ROI-space time series (output of ROIMaker.apply)
    title : str
        Plot title
    subject : str, optional
        Subject identifier
    y_lim : tuple, optional
        Y-axis limits as (min, max). If None, will use the auto-scaled limits.
    """
    link = data.probe.link
    if 'ROI' not in link.columns:
        raise ValueError("plot_roi_series expects ROI-space data; the probe link has no 'ROI' column.")

    roi_names = list(dict.fromkeys(link['ROI']))
    fig, axes = plt.subplots(nrows=len(roi_names), ncols=1,
                             figsize=(10, 3 * len(roi_names)), sharex=True, squeeze=False)
    axes = axes[:, 0]

    title_parts = [title]
    if subject: title_parts.append(f"Subject: {subject}")
    fig.suptitle("\n".join(title_parts))

    # If y_lim is None, calculate global min and max across all ROIs
    if y_lim is None and np.isfinite(data.data).any():
        min_val = np.nanmin(data.data)
        max_val = np.nanmax(data.data)
        # Add a small buffer (5% of range)
        buffer = 0.05 * (max_val - min_val)
        y_lim = (min_val - buffer, max_val + buffer)

    labels = _roi_labels(link)
    for ax, name in zip(axes, roi_names):
        for col in np.flatnonzero(link['ROI'].to_numpy() == name):
            ax.plot(data.time, data.data[:, col], label=labels[col])
        if y_lim is not None:
            ax.set_ylim(y_lim)
        ax.set_ylabel("z-score")
        ax.legend(loc='upper right')
    axes[-1].set_xlabel("Time (s)")
    plt.tight_layout(rect=[0, 0, 1, 0.95])

    return fig, axes, y_lim  # Return y_lim so it can be reused


def plot_connectivity(stats: ConnectivityStats, condition=None, title="ROI Connectivity",
                      vmin=-1.0, vmax=1.0):
    """
    Heatmap of one condition of an ROI connectivity matrix

    Parameters:
    ----------
    stats : ConnectivityStats
        Connectivity statistics (channel or ROI space)
    condition : str, optional
        Condition to plot. Defaults to the first one.
    title : str
        Plot title
    vmin, vmax : float
        Color scale limits. NaN entries are left blank.
    """
    if condition is None:
        index = 0
    elif condition in stats.conditions:
        index = stats.conditions.index(condition)
    else:
        raise ValueError(f"Condition '{condition}' not in {stats.conditions}")

    link = stats.probe.link
    if 'ROI' in link.columns:
        labels = _roi_labels(link)
    else:
        labels = [f"S{row['source']}-D{row['detector']} {row['type']}" for _, row in link.iterrows()]

    fig, ax = plt.subplots(figsize=(8, 7))
    sns.heatmap(stats.R[:, :, index], ax=ax, cmap='RdBu_r', vmin=vmin, vmax=vmax,
                xticklabels=labels, yticklabels=labels, square=True,
                cbar_kws={'label': 'R'})
    label = stats.conditions[index] if stats.conditions else ''
    ax.set_title(f"{title} ({label})" if label else title)
    plt.tight_layout()

    return fig, ax
