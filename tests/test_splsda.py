"""
Tests for the MINT sPLS-DA model backends.
"""

import sys

import numpy as np
import pandas as pd
import pytest

from scmint.data import generate_synthetic_data
from scmint.models import AVAILABLE_MODELS, MintResult, MintSPLSDA, MixOmicsModel, get_model
from scmint.models.base import component_names
from scmint.models.splsda import scale_per_study, soft_threshold


@pytest.fixture
def small_problem():
    """Log-scale expression with labels and studies (120 cells x 100 genes)."""
    adata = generate_synthetic_data(
        n_cells=120, n_genes=100, n_cell_types=3, n_batches=2, genes_per_type=10, seed=1
    )
    X = pd.DataFrame(
        np.log2(adata.X + 1), index=adata.obs_names, columns=adata.var_names
    )
    Y = adata.obs['mix'].to_numpy()
    study = adata.obs['batch'].to_numpy()
    return X, Y, study, adata.var['marker_for']


def test_soft_threshold_keeps_largest():
    vec = np.array([3.0, -1.0, 2.0, 0.5])
    np.testing.assert_allclose(soft_threshold(vec, 2), [2.0, 0.0, 1.0, 0.0])


def test_soft_threshold_keep_all():
    vec = np.array([1.0, -2.0])
    out = soft_threshold(vec, 5)
    np.testing.assert_array_equal(out, vec)
    assert out is not vec


def test_scale_per_study():
    M = np.array([
        [1.0, 5.0],
        [3.0, 5.0],
        [10.0, 1.0],
        [20.0, 3.0],
    ])
    study = np.array(['a', 'a', 'b', 'b'])
    out = scale_per_study(M, study)

    for s in ['a', 'b']:
        block = out[study == s]
        np.testing.assert_allclose(block.mean(axis=0), 0.0, atol=1e-12)
    # constant column within study 'a' is only centred
    np.testing.assert_array_equal(out[study == 'a', 1], [0.0, 0.0])
    np.testing.assert_allclose(out[study == 'b', 0].std(ddof=1), 1.0)


def test_fit_shapes(small_problem):
    X, Y, study, _ = small_problem
    result = MintSPLSDA().fit(X, Y, study, ncomp=2, keepX=[10, 5])

    assert result.variates.shape == (120, 2)
    assert list(result.variates.columns) == ['comp1', 'comp2']
    assert result.loadings.shape == (100, 2)
    assert set(result.variates_partial) == {'Batch_1', 'Batch_2'}
    assert result.extra['classes'] == ['CellType_1', 'CellType_2', 'CellType_3']


def test_fit_sparsity(small_problem):
    X, Y, study, _ = small_problem
    result = MintSPLSDA().fit(X, Y, study, ncomp=2, keepX=[10, 5])

    nonzero = (result.loadings != 0).sum(axis=0)
    assert 1 <= nonzero['comp1'] <= 10
    assert 1 <= nonzero['comp2'] <= 5
    assert len(result.select_var(1)) == nonzero['comp1']


def test_select_var_order(small_problem):
    X, Y, study, _ = small_problem
    result = MintSPLSDA().fit(X, Y, study, ncomp=1, keepX=[8])

    values = result.select_var(1)['value'].abs().to_numpy()
    assert (np.diff(values) <= 0).all()

    with pytest.raises(ValueError):
        result.select_var(2)


def test_markers_union_first_seen_order():
    genes = [f"g{i}" for i in range(6)]
    comps = component_names(2)
    loadings = pd.DataFrame(0.0, index=genes, columns=comps)
    loadings.loc[['g3', 'g1'], 'comp1'] = [0.9, -0.5]
    loadings.loc[['g1', 'g5', 'g3'], 'comp2'] = [0.8, 0.4, 0.1]
    variates = pd.DataFrame(np.zeros((2, 2)), columns=comps)

    result = MintResult(variates, {}, loadings, [2, 3])

    assert result.markers() == ['g3', 'g1', 'g5']


def test_partial_variates_match_global(small_problem):
    X, Y, study, _ = small_problem
    result = MintSPLSDA().fit(X, Y, study, ncomp=2, keepX=[10, 10])

    combined = pd.concat(result.variates_partial.values())
    assert len(combined) == len(X)
    pd.testing.assert_frame_equal(
        combined.sort_index(), result.variates.loc[combined.index].sort_index()
    )
    for s, frame in result.variates_partial.items():
        assert (study[X.index.get_indexer(frame.index)] == s).all()


def test_selects_planted_markers(small_problem):
    X, Y, study, marker_for = small_problem
    result = MintSPLSDA().fit(X, Y, study, ncomp=2, keepX=[10, 10])

    selected = marker_for.loc[result.markers()]
    assert (selected != '').mean() >= 0.8


def test_components_separate_classes(small_problem):
    X, Y, study, _ = small_problem
    result = MintSPLSDA().fit(X, Y, study, ncomp=2, keepX=[10, 10])

    scores = result.variates.to_numpy()
    centroids = np.vstack([scores[Y == c].mean(axis=0) for c in np.unique(Y)])
    spread = np.mean([scores[Y == c].std(axis=0).mean() for c in np.unique(Y)])
    gaps = [
        np.linalg.norm(centroids[i] - centroids[j])
        for i in range(3) for j in range(i + 1, 3)
    ]
    assert min(gaps) > spread


def test_deterministic(small_problem):
    X, Y, study, _ = small_problem
    a = MintSPLSDA().fit(X, Y, study, ncomp=2, keepX=[10, 10])
    b = MintSPLSDA().fit(X, Y, study, ncomp=2, keepX=[10, 10])
    pd.testing.assert_frame_equal(a.loadings, b.loadings)


def test_accepts_numpy_input(small_problem):
    X, Y, study, _ = small_problem
    result = MintSPLSDA().fit(X.to_numpy(), Y, study, ncomp=1, keepX=[5])

    assert result.loadings.index[0] == 'X1'
    assert result.variates.index[0] == '1'


@pytest.mark.parametrize('keepX', [[10], [0, 5], [10, 101]])
def test_invalid_keepX(small_problem, keepX):
    X, Y, study, _ = small_problem
    with pytest.raises(ValueError):
        MintSPLSDA().fit(X, Y, study, ncomp=2, keepX=keepX)


def test_missing_labels_rejected(small_problem):
    X, Y, study, _ = small_problem
    Y = Y.astype(object)
    Y[0] = None
    with pytest.raises(ValueError, match="missing"):
        MintSPLSDA().fit(X, Y, study, ncomp=1, keepX=[5])


def test_length_mismatch_rejected(small_problem):
    X, Y, study, _ = small_problem
    with pytest.raises(ValueError, match="one entry per row"):
        MintSPLSDA().fit(X, Y[:-1], study, ncomp=1, keepX=[5])


def test_tune(small_problem):
    X, Y, study, _ = small_problem
    tuned = MintSPLSDA().tune(X, Y, study, ncomp=2, test_keepX=[20, 5, 10])

    assert list(tuned.error_rate.index) == [5, 10, 20]
    assert list(tuned.error_rate.columns) == ['comp1', 'comp2']
    assert tuned.error_rate.notna().all(axis=None)
    assert ((tuned.error_rate >= 0) & (tuned.error_rate <= 1)).all(axis=None)
    assert len(tuned.choice_keepX) == 2
    assert set(tuned.choice_keepX) <= {5, 10, 20}
    assert tuned.measure == 'BER'
    assert tuned.dist == 'mahalanobis.dist'


def test_tune_picks_lowest_error(small_problem):
    X, Y, study, _ = small_problem
    tuned = MintSPLSDA().tune(X, Y, study, ncomp=1, test_keepX=[5, 10])

    errors = tuned.error_rate['comp1']
    assert errors[tuned.choice_keepX[0]] == errors.min()
    # planted markers make held-out studies easy to classify
    assert errors.min() < 0.5


@pytest.mark.parametrize('dist', ['max.dist', 'centroids.dist'])
def test_tune_other_distances(small_problem, dist):
    X, Y, study, _ = small_problem
    tuned = MintSPLSDA().tune(X, Y, study, ncomp=1, test_keepX=[5], dist=dist,
                              measure='overall')

    assert tuned.choice_keepX == [5]
    assert tuned.dist == dist


def test_tune_invalid_options(small_problem):
    X, Y, study, _ = small_problem
    model = MintSPLSDA()
    with pytest.raises(ValueError):
        model.tune(X, Y, study, ncomp=1, test_keepX=[5], dist='euclid')
    with pytest.raises(ValueError):
        model.tune(X, Y, study, ncomp=1, test_keepX=[5], measure='AUC')
    with pytest.raises(ValueError):
        model.tune(X, Y, study, ncomp=1, test_keepX=[])
    with pytest.raises(ValueError):
        model.tune(X, Y, study, ncomp=1, test_keepX=[500])


def test_tune_needs_two_studies(small_problem):
    X, Y, study, _ = small_problem
    with pytest.raises(ValueError, match="two studies"):
        MintSPLSDA().tune(X, Y, np.array(['one'] * len(Y)), ncomp=1, test_keepX=[5])


def test_tune_parallel_matches_serial(small_problem):
    X, Y, study, _ = small_problem
    serial = MintSPLSDA(n_jobs=1).tune(X, Y, study, ncomp=1, test_keepX=[5, 10])
    parallel = MintSPLSDA(n_jobs=2).tune(X, Y, study, ncomp=1, test_keepX=[5, 10])

    pd.testing.assert_frame_equal(serial.error_rate, parallel.error_rate)


def test_model_registry():
    assert set(AVAILABLE_MODELS) == {'splsda', 'mixomics'}

    model = get_model('splsda', n_jobs=2)
    assert isinstance(model, MintSPLSDA)
    assert model.params['n_jobs'] == 2
    assert 'MintSPLSDA' in repr(model)

    with pytest.raises(ValueError, match="Unknown model"):
        get_model('harmony')


def test_mixomics_requires_rpy2(monkeypatch, small_problem):
    monkeypatch.setitem(sys.modules, 'rpy2', None)
    monkeypatch.setitem(sys.modules, 'rpy2.robjects', None)
    X, Y, study, _ = small_problem

    with pytest.raises(ImportError, match="pip install"):
        MixOmicsModel().fit(X, Y, study, ncomp=1, keepX=[5])
