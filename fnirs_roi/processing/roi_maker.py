"""
ROIMaker - averages channel-space fNIRS payloads into regions of interest.

Usage:
    maker = ROIMaker()
    maker.set_probe(hb.probe)
    maker.add_roi([1, 1, 1], [1, 2, 3], 'left dlPFC')
    roi_stats = maker.apply(subj_stats)

The ROI probe and the projection matrix are derived from the current channel
probe and ROI list every time they are needed; nothing is cached.
"""

import logging
import threading
from numbers import Integral
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from fnirs_roi.core.data import ChannelPayload
from fnirs_roi.core.exceptions import (
    ProbeTypeError,
    PreconditionError,
    ValidationError,
    DuplicateNameError,
    ProbeMismatchError,
    UnsupportedTypeError
)
from fnirs_roi.core.probe import Probe
from fnirs_roi.processing.projection import project_payload

logger = logging.getLogger(__name__)


class ROIMaker:
    """
    Registry of named ROIs over a channel probe, and the engine applying them.

    Attributes:
        description: Free-text description of the ROI set (e.g. a file name)
    """

    def __init__(self, description: Optional[str] = None):
        self.description = description
        self._lock = threading.RLock()
        self._probe_channel = None
        self._sources = []
        self._detectors = []
        self._names = []

    # Read-only state -----------------------------------------------------------

    @property
    def probe_channel(self) -> Optional[Probe]:
        """Original channel-based probe (None until set_probe)."""
        return self._probe_channel

    @property
    def sources(self) -> Tuple[Tuple[int, ...], ...]:
        return tuple(self._sources)

    @property
    def detectors(self) -> Tuple[Tuple[int, ...], ...]:
        return tuple(self._detectors)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._names)

    # Mutators ------------------------------------------------------------------

    def set_probe(self, probe: Probe) -> None:
        """
        Set the original channel-space probe.

        Raises:
            ProbeTypeError: if probe is not a Probe
            PreconditionError: if ROIs were already added against a different probe
        """
        if not isinstance(probe, Probe):
            raise ProbeTypeError(f"Probe is not correct type: {type(probe).__name__}")

        with self._lock:
            if self._names and self._probe_channel is not None and probe != self._probe_channel:
                raise PreconditionError(
                    f"{len(self._names)} ROIs are defined against the current channel probe; "
                    "call reset() before setting a different probe."
                )
            self._probe_channel = probe
        logger.info(f"Channel probe set ({probe.n_channels} channels, types={probe.types})")

    def add_roi(self, sources, detectors, names: Union[str, Sequence[str], None] = None) -> None:
        """
        Add one ROI or a batch of ROIs.

        Args:
            sources: Source ids of one ROI (int or sequence of ints), or a
                sequence of such sequences for a batch
            detectors: Detector ids, paired positionally with sources
            names: ROI name, or one name per ROI in the batch. Defaults to
                "ROI {n}" with n the 1-based position in the registry.

        Raises:
            PreconditionError: if no channel probe is set
            ValidationError: if ids are malformed or absent from the channel probe
            DuplicateNameError: if a name is already used
        """
        with self._lock:
            if self._probe_channel is None:
                raise PreconditionError("Must set channel probe before adding ROIs.")

            roi_sources = _normalize_batch(sources, 'sources')
            roi_detectors = _normalize_batch(detectors, 'detectors')
            if len(roi_sources) != len(roi_detectors):
                raise ValidationError(
                    f"Got {len(roi_sources)} source sets but {len(roi_detectors)} detector sets."
                )

            if names is None:
                start = len(self._names) + 1
                roi_names = [f"ROI {start + k}" for k in range(len(roi_sources))]
            elif isinstance(names, str):
                roi_names = [names]
            else:
                roi_names = [str(name) for name in names]
            if len(roi_names) != len(roi_sources):
                raise ValidationError(f"Got {len(roi_names)} names for {len(roi_sources)} ROIs.")

            self._validate(roi_sources, roi_detectors, roi_names)

            self._sources.extend(roi_sources)
            self._detectors.extend(roi_detectors)
            self._names.extend(roi_names)

        logger.info(f"Added {len(roi_names)} ROI(s): {roi_names}")

    def add_roi_table(self, table: pd.DataFrame) -> None:
        """
        Add ROIs from a table with one row per source/detector pair.

        Args:
            table: DataFrame with columns 'name', 'source' and 'detector'.
                Rows sharing a name form one ROI; ROIs are added in order of
                first appearance.
        """
        missing = [col for col in ('name', 'source', 'detector') if col not in table.columns]
        if missing:
            raise ValidationError(f"ROI table is missing columns: {missing}")

        names = list(pd.unique(table['name'].astype(str)))
        grouped = table.assign(name=table['name'].astype(str)).groupby('name', sort=False)
        sources = [list(grouped.get_group(name)['source']) for name in names]
        detectors = [list(grouped.get_group(name)['detector']) for name in names]
        self.add_roi(sources, detectors, names)

    def reset(self) -> None:
        """Clear the channel probe and all ROIs."""
        with self._lock:
            self._probe_channel = None
            self._sources = []
            self._detectors = []
            self._names = []
        logger.debug("ROIMaker reset")

    # Derived values -------------------------------------------------------------

    @property
    def probe_roi(self) -> Optional[Probe]:
        """
        Probe whose link rows are ROIs instead of channels.

        One row per ROI and signal type (ROI-major), with tuple-valued
        'source'/'detector' cells and an 'ROI' column. Hyperscan probes get
        an 'A' half followed by a 'B' half whose ids are shifted by the
        offset between the two subjects.
        """
        with self._lock:
            probe = self._probe_channel
            if probe is None:
                return None

            types = probe.types
            rows = []
            for src, det, name in zip(self._sources, self._detectors, self._names):
                for signal_type in types:
                    rows.append({'source': src, 'detector': det, 'type': signal_type, 'ROI': name})
            link = pd.DataFrame(rows, columns=['source', 'detector', 'type', 'ROI'])

            if probe.is_hyperscan:
                source_offset, detector_offset = probe.hyperscan_offsets()
                link_a = link.assign(hyperscan='A')
                link_b = link.assign(hyperscan='B')
                link_b['source'] = link_b['source'].map(lambda src: tuple(s + source_offset for s in src))
                link_b['detector'] = link_b['detector'].map(lambda det: tuple(d + detector_offset for d in det))
                link = pd.concat([link_a, link_b], ignore_index=True)

            return probe.with_link(link)

    def get_channel_inds(self, sources: Sequence[int], detectors: Sequence[int], signal_type: str,
                         hyperscan: Optional[str] = None) -> np.ndarray:
        """
        Boolean mask of channel-probe rows matching any (source, detector) pair at a type.

        Type labels are compared case-insensitively. When a hyperscan tag is
        given and the channel link carries one, only rows of that subject match,
        so subjects sharing the same numbering are kept apart.
        """
        with self._lock:
            probe = self._probe_channel
            if probe is None:
                raise PreconditionError("Must set channel probe first.")
            chanlink = probe.link

        chan_types = chanlink['type'].str.lower().to_numpy()
        chan_sources = chanlink['source'].to_numpy()
        chan_detectors = chanlink['detector'].to_numpy()

        inds = np.zeros(len(chanlink), dtype=bool)
        type_match = chan_types == str(signal_type).lower()
        if hyperscan is not None and 'hyperscan' in chanlink.columns:
            type_match &= chanlink['hyperscan'].astype(str).str.upper().to_numpy() == str(hyperscan).upper()
        for src, det in zip(np.atleast_1d(sources), np.atleast_1d(detectors)):
            inds |= (chan_sources == src) & (chan_detectors == det) & type_match
        return inds

    def get_mapping(self) -> np.ndarray:
        """
        (#channels x #ROI rows) averaging matrix.

        Column i holds 1/k at the k channel rows belonging to ROI row i. An ROI
        row with no matching channel gives an all-zero column.
        """
        with self._lock:
            probe_roi = self.probe_roi
            if probe_roi is None:
                raise PreconditionError("Must set channel probe and ROIs first.")
            roilink = probe_roi.link

            mapping = np.zeros((self._probe_channel.n_channels, len(roilink)))
            for i, row in roilink.iterrows():
                inds = self.get_channel_inds(row['source'], row['detector'], row['type'],
                                             row.get('hyperscan'))
                count = inds.sum()
                if count == 0:
                    logger.warning(f"ROI '{row['ROI']}' ({row['type']}) matches no channels; "
                                   "its column in the projection is all zeros")
                    continue
                mapping[inds, i] = 1.0 / count
            return mapping

    # Engine ---------------------------------------------------------------------

    def apply(self, data):
        """
        Average channel-space payloads into ROIs.

        Args:
            data: A Data, ChannelStats or ConnectivityStats payload, or a
                list/tuple of them

        Returns:
            The ROI-space payload, or a list of them when a list was given

        Raises:
            PreconditionError: if no probe or no ROI is set up
            UnsupportedTypeError: if a payload is not a supported variant
            ProbeMismatchError: if a payload's probe differs from the channel probe
        """
        is_batch = isinstance(data, (list, tuple))
        items = list(data) if is_batch else [data]

        with self._lock:
            probe_roi = self.probe_roi
            if probe_roi is None:
                raise PreconditionError("Must setup channel probe and ROIs first.")
            if not self._names:
                raise PreconditionError("No ROIs detected in ROI probe.")

            for i, item in enumerate(items):
                if not isinstance(item, ChannelPayload):
                    raise UnsupportedTypeError(f"Type {type(item).__name__} not implemented.")
                if item.probe != self._probe_channel:
                    raise ProbeMismatchError(
                        f"Data probe {i} does not match original channel probe used to create ROI probe"
                    )

            projmat = self.get_mapping()
            num_rois = len(self._names)

        results = [project_payload(item, projmat, probe_roi) for item in items]
        logger.info(f"Applied {num_rois} ROIs to {len(results)} payload(s)")
        return results if is_batch else results[0]

    # Helpers -------------------------------------------------------------------

    def _validate(self, roi_sources: List[Tuple[int, ...]], roi_detectors: List[Tuple[int, ...]],
                  roi_names: List[str]) -> None:
        """Check a batch of ROIs against the channel probe and existing names."""
        chanlink = self._probe_channel.link
        channel_sources = set(chanlink['source'].tolist())
        channel_detectors = set(chanlink['detector'].tolist())

        seen = set(self._names)
        for src, det, name in zip(roi_sources, roi_detectors, roi_names):
            if len(src) != len(det):
                raise ValidationError(
                    f"ROI '{name}' has {len(src)} sources but {len(det)} detectors."
                )
            unknown_sources = sorted(set(src) - channel_sources)
            unknown_detectors = sorted(set(det) - channel_detectors)
            if unknown_sources or unknown_detectors:
                raise ValidationError(
                    f"Attempted to add sources {unknown_sources} or detectors {unknown_detectors} "
                    f"that don't exist in channel probe (ROI '{name}')"
                )
            if name in seen:
                raise DuplicateNameError(f"Attempted to add ROI with same name: {name}")
            seen.add(name)


def _normalize_ids(values, label: str) -> Tuple[int, ...]:
    """Turn a scalar or sequence of ids into a tuple of positive ints."""
    values = np.atleast_1d(np.asarray(values))
    if values.ndim != 1 or values.size == 0:
        raise ValidationError(f"ROI {label} must be a non-empty sequence of ids.")
    ids = []
    for value in values.tolist():
        if isinstance(value, bool) or not isinstance(value, Integral):
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            else:
                raise ValidationError(f"ROI {label} must be integers, got {value!r}.")
        if value < 1:
            raise ValidationError(f"ROI {label} must be positive, got {value}.")
        ids.append(int(value))
    return tuple(ids)


def _normalize_batch(values, label: str) -> List[Tuple[int, ...]]:
    """A single ROI's ids becomes a one-element batch; a sequence of sequences stays a batch."""
    if np.isscalar(values) or (isinstance(values, np.ndarray) and values.ndim <= 1):
        return [_normalize_ids(values, label)]
    values = list(values)
    if not values:
        raise ValidationError(f"ROI {label} must not be empty.")
    if values and all(np.isscalar(v) for v in values):
        return [_normalize_ids(values, label)]
    return [_normalize_ids(v, label) for v in values]
