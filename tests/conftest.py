import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest

from fnirs_roi.core.probe import Probe
from fnirs_roi.processing.roi_maker import ROIMaker


def build_probe(pairs, types=('hbo', 'hbr'), hyperscan=None):
    """Probe with every (source, detector) pair measured for each type, type-major."""
    rows = []
    for signal_type in types:
        for src, det in pairs:
            rows.append({'source': src, 'detector': det, 'type': signal_type})
    link = pd.DataFrame(rows)
    if hyperscan is not None:
        link['hyperscan'] = hyperscan
    return Probe(link)


def build_hyperscan_probe():
    """Subject A uses sources 1-2 / detectors 1-2, subject B sources 3-4 / detectors 5-6."""
    rows = []
    for signal_type in ('hbo', 'hbr'):
        for src, det in [(1, 1), (1, 2), (2, 2)]:
            rows.append({'source': src, 'detector': det, 'type': signal_type, 'hyperscan': 'A'})
        for src, det in [(3, 5), (3, 6), (4, 6)]:
            rows.append({'source': src, 'detector': det, 'type': signal_type, 'hyperscan': 'B'})
    return Probe(pd.DataFrame(rows))


@pytest.fixture
def three_channel_probe():
    return build_probe([(1, 1), (1, 2), (2, 1)], types=('hbo',))


@pytest.fixture
def probe():
    return build_probe([(1, 1), (1, 2), (2, 1), (2, 2)])


@pytest.fixture
def maker(probe):
    m = ROIMaker(description='test ROIs')
    m.set_probe(probe)
    return m


@pytest.fixture
def rng():
    return np.random.default_rng(0)
