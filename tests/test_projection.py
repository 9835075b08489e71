import numpy as np
import pandas as pd
import pytest

from fnirs_roi.core.data import Data, ChannelStats, ConnectivityStats
from fnirs_roi.core.exceptions import PreconditionError, ProbeMismatchError, UnsupportedTypeError
from fnirs_roi.preprocessing.normalization import zscore_channels
from fnirs_roi.processing.projection import project_payload
from fnirs_roi.processing.roi_maker import ROIMaker
from conftest import build_probe


def build_series(probe, n_samples=200, seed=0):
    rng = np.random.default_rng(seed)
    data = rng.normal(size=(n_samples, probe.n_channels)) * rng.uniform(1, 50, size=probe.n_channels)
    return Data(probe=probe, data=data, time=np.arange(n_samples) / 10.0)


def build_channel_stats(probe, conditions=('rest', 'task'), seed=0):
    rng = np.random.default_rng(seed)
    n = probe.n_channels * len(conditions)
    variables = pd.concat([probe.link.assign(cond=c) for c in conditions], ignore_index=True)
    a = rng.normal(size=(n, n))
    covb = a @ a.T + np.eye(n)
    return ChannelStats(probe=probe, variables=variables, beta=rng.normal(size=n), covb=covb, dfe=100)


def build_connectivity(probe, conditions=('rest', 'task'), seed=0, with_err=False):
    rng = np.random.default_rng(seed)
    n = probe.n_channels
    R = np.zeros((n, n, len(conditions)))
    for j in range(len(conditions)):
        a = rng.uniform(-0.9, 0.9, size=(n, n))
        R[:, :, j] = (a + a.T) / 2
        np.fill_diagonal(R[:, :, j], 1.0)
    err = rng.uniform(0.05, 0.2, size=R.shape) if with_err else None
    return ConnectivityStats(probe=probe, R=R, conditions=list(conditions), ZstdErr=err, dfe=300)


# Series ---------------------------------------------------------------------

def test_series_single_all_channel_roi_is_zscored_mean(three_channel_probe):
    maker = ROIMaker()
    maker.set_probe(three_channel_probe)
    maker.add_roi([1, 1, 2], [1, 2, 1], 'all')
    data = build_series(three_channel_probe)

    out = maker.apply(data)
    expected = zscore_channels(data.data).mean(axis=1)
    np.testing.assert_allclose(out.data[:, 0], expected)
    assert out.probe == maker.probe_roi
    np.testing.assert_allclose(out.time, data.time)


def test_series_invariant_to_channel_rescaling(maker, probe):
    maker.add_roi([1, 1], [1, 2], 'L1')
    data = build_series(probe)
    rescaled = data.data.copy()
    rescaled[:, 0] = 7.5 * rescaled[:, 0] - 3.0
    out = maker.apply(data)
    out_rescaled = maker.apply(Data(probe=probe, data=rescaled, time=data.time))
    np.testing.assert_allclose(out.data, out_rescaled.data)


def test_series_does_not_mutate_input(maker, probe):
    maker.add_roi([1, 1], [1, 2], 'L1')
    data = build_series(probe)
    original = data.data.copy()
    out = maker.apply(data)
    np.testing.assert_array_equal(data.data, original)
    assert data.probe == probe
    assert out is not data
    assert out.data.shape == (data.data.shape[0], 2)


# Regression statistics --------------------------------------------------------

def test_channel_stats_propagates_beta_and_covariance(maker, probe):
    maker.add_roi([[1, 1], [2, 2]], [[1, 2], [1, 2]], ['left', 'right'])
    stats = build_channel_stats(probe)
    out = maker.apply(stats)

    P = maker.get_mapping()
    K = np.kron(np.eye(2), P)
    np.testing.assert_allclose(out.beta, K.T @ stats.beta)
    np.testing.assert_allclose(out.covb, K.T @ stats.covb @ K)
    assert out.beta.shape == (2 * 4,)
    assert out.covb.shape == (8, 8)


def test_channel_stats_covariance_stays_symmetric_psd(maker, probe):
    maker.add_roi([[1, 1], [2, 2]], [[1, 2], [1, 2]], ['left', 'right'])
    out = maker.apply(build_channel_stats(probe, seed=3))
    np.testing.assert_allclose(out.covb, out.covb.T, atol=1e-10)
    assert np.linalg.eigvalsh(out.covb).min() > -1e-10


def test_channel_stats_condition_labels_keep_first_appearance_order(maker, probe):
    maker.add_roi([1, 1], [1, 2], 'L1')
    stats = build_channel_stats(probe, conditions=('task', 'rest', 'b'))
    out = maker.apply(stats)
    assert list(out.variables['cond']) == ['task', 'task', 'rest', 'rest', 'b', 'b']
    assert list(out.variables['ROI']) == ['L1'] * 6
    assert list(out.variables['type']) == ['hbo', 'hbr'] * 3
    assert out.conditions == ['task', 'rest', 'b']


def test_channel_stats_rejects_wrong_beta_length(maker, probe):
    maker.add_roi([1], [1], 'L1')
    stats = build_channel_stats(probe)
    bad = ChannelStats(probe=probe, variables=stats.variables, beta=stats.beta[:-1],
                       covb=stats.covb[:-1, :-1])
    with pytest.raises(ValueError):
        maker.apply(bad)


# Connectivity -----------------------------------------------------------------

def test_connectivity_is_bilinear_projection(maker, probe):
    maker.add_roi([[1, 1], [2, 2]], [[1, 2], [1, 2]], ['left', 'right'])
    stats = build_connectivity(probe)
    out = maker.apply(stats)

    P = maker.get_mapping()
    assert out.R.shape == (4, 4, 2)
    for j in range(2):
        np.testing.assert_allclose(out.R[:, :, j], P.T @ stats.R[:, :, j] @ P)
    assert out.conditions == ['rest', 'task']
    assert out.ZstdErr is None


def test_connectivity_nan_policy(three_channel_probe):
    maker = ROIMaker()
    maker.set_probe(three_channel_probe)
    maker.add_roi([1, 1], [1, 2], 'A')
    maker.add_roi([2], [1], 'B')
    R = np.array([[1.0, 0.4, 0.2],
                  [0.4, 1.0, np.nan],
                  [0.2, np.nan, 1.0]])
    stats = ConnectivityStats(probe=three_channel_probe, R=R, conditions=['rest'])

    out = maker.apply(stats)
    # A-B mixes channel pairs (1,3)=0.2 and (2,3)=NaN: some valid -> numeric
    assert np.isfinite(out.R[0, 1, 0])
    np.testing.assert_allclose(out.R[0, 1, 0], 0.5 * 0.2)

    all_nan = R.copy()
    all_nan[0, 2] = all_nan[2, 0] = np.nan
    out = maker.apply(ConnectivityStats(probe=three_channel_probe, R=all_nan, conditions=['rest']))
    # every contributing pair NaN -> NaN
    assert np.isnan(out.R[0, 1, 0])
    assert np.isnan(out.R[1, 0, 0])
    assert np.isfinite(out.R[0, 0, 0])
    # input untouched
    assert np.isnan(all_nan[1, 2])


def test_connectivity_standard_error_is_projected(maker, probe):
    maker.add_roi([[1, 1], [2, 2]], [[1, 2], [1, 2]], ['left', 'right'])
    stats = build_connectivity(probe, with_err=True)
    stats.ZstdErr[0, 1, 0] = np.nan
    out = maker.apply(stats)
    P = maker.get_mapping()
    filled = np.nan_to_num(stats.ZstdErr[:, :, 0])
    np.testing.assert_allclose(out.ZstdErr[:, :, 0], P.T @ filled @ P)
    assert out.ZstdErr.shape == out.R.shape


# Preconditions and dispatch -------------------------------------------------------

def test_apply_without_probe_fails():
    with pytest.raises(PreconditionError):
        ROIMaker().apply([])


def test_apply_without_rois_fails(maker, probe):
    with pytest.raises(PreconditionError):
        maker.apply(build_series(probe))


def test_apply_rejects_probe_mismatch(maker):
    maker.add_roi([1], [1], 'L1')
    other = build_probe([(1, 1), (1, 2)])
    with pytest.raises(ProbeMismatchError):
        maker.apply(build_series(other))


def test_apply_rejects_unsupported_payload(maker):
    maker.add_roi([1], [1], 'L1')
    with pytest.raises(UnsupportedTypeError, match='dict'):
        maker.apply({'data': np.zeros((3, 8))})


def test_project_payload_rejects_unknown_type(maker):
    maker.add_roi([1], [1], 'L1')
    with pytest.raises(UnsupportedTypeError):
        project_payload(object(), maker.get_mapping(), maker.probe_roi)


def test_apply_accepts_lists_and_fails_atomically(maker, probe):
    maker.add_roi([1, 1], [1, 2], 'L1')
    payloads = [build_series(probe, seed=1), build_connectivity(probe), build_channel_stats(probe)]
    out = maker.apply(payloads)
    assert isinstance(out, list)
    assert [type(p) for p in out] == [Data, ConnectivityStats, ChannelStats]

    mixed = [build_series(probe), build_series(build_probe([(1, 1)]))]
    with pytest.raises(ProbeMismatchError, match='1'):
        maker.apply(mixed)


def test_series_single_sample_gives_zeros(maker, probe):
    maker.add_roi([1, 1], [1, 2], 'L1')
    out = maker.apply(Data(probe=probe, data=np.ones((1, probe.n_channels))))
    np.testing.assert_array_equal(out.data, np.zeros((1, 2)))


def test_series_flat_channel_does_not_bias_roi(three_channel_probe):
    maker = ROIMaker()
    maker.set_probe(three_channel_probe)
    maker.add_roi([1, 1], [1, 2], 'A')
    rng = np.random.default_rng(4)
    data = np.column_stack([rng.normal(size=100), np.full(100, 0.1), rng.normal(size=100)])
    out = maker.apply(Data(probe=three_channel_probe, data=data))
    expected = 0.5 * zscore_channels(data[:, :1])[:, 0]
    np.testing.assert_allclose(out.data[:, 0], expected)


def test_connectivity_conditions_must_match_slices(probe):
    R = np.zeros((probe.n_channels, probe.n_channels, 2))
    with pytest.raises(ValueError):
        ConnectivityStats(probe=probe, R=R, conditions=['only'])
    with pytest.raises(ValueError):
        ConnectivityStats(probe=probe, R=R, conditions=['a', 'b'], ZstdErr=np.zeros((2, 2, 2)))


def test_connectivity_fisher_z(probe):
    R = np.zeros((probe.n_channels, probe.n_channels, 1))
    R[0, 1, 0] = 0.5
    np.fill_diagonal(R[:, :, 0], 1.0)
    stats = ConnectivityStats(probe=probe, R=R, conditions=['rest'])
    np.testing.assert_allclose(stats.Z[0, 1, 0], np.arctanh(0.5))
    assert np.isinf(stats.Z[0, 0, 0])


def test_project_payload_dispatches_on_subclasses(maker, probe):
    class TaggedData(Data):
        pass

    maker.add_roi([1, 1], [1, 2], 'L1')
    rng = np.random.default_rng(6)
    payload = TaggedData(probe=probe, data=rng.normal(size=(20, probe.n_channels)))
    out = project_payload(payload, maker.get_mapping(), maker.probe_roi)
    assert isinstance(out, TaggedData)
    assert out.data.shape == (20, 2)
