import pandas as pd
import pytest

from fnirs_roi.core.probe import Probe
from conftest import build_probe, build_hyperscan_probe


def test_probe_equality_is_by_value():
    a = build_probe([(1, 1), (1, 2)])
    b = build_probe([(1, 1), (1, 2)])
    c = build_probe([(1, 1), (2, 2)])
    assert a == b
    assert a is not b
    assert a != c


def test_probe_equality_ignores_integer_width_and_index():
    link = pd.DataFrame({'source': [1, 2], 'detector': [1, 1], 'type': ['hbo', 'hbo']})
    other = link.astype({'source': 'int32', 'detector': 'int32'})
    other.index = [10, 11]
    assert Probe(link) == Probe(other)


def test_probe_types_keep_first_appearance_order():
    probe = build_probe([(1, 1)], types=('hbr', 'hbo'))
    assert probe.types == ['hbr', 'hbo']


def test_probe_requires_link_columns():
    with pytest.raises(ValueError):
        Probe(pd.DataFrame({'source': [1], 'detector': [1]}))
    with pytest.raises(TypeError):
        Probe([(1, 1, 'hbo')])


def test_link_property_returns_copy():
    probe = build_probe([(1, 1)])
    link = probe.link
    link.loc[0, 'source'] = 99
    assert probe.link.loc[0, 'source'] == 1


def test_hyperscan_detection_and_offsets():
    probe = build_hyperscan_probe()
    assert probe.is_hyperscan
    assert probe.hyperscan_offsets() == (2, 4)


def test_single_tag_is_not_hyperscan():
    probe = build_probe([(1, 1), (1, 2)], hyperscan='A')
    assert not probe.is_hyperscan
    with pytest.raises(ValueError):
        probe.hyperscan_offsets()
