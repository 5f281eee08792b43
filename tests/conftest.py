"""
Pytest configuration and fixtures for scmint tests.
"""

import numpy as np
import pandas as pd
import pytest
from anndata import AnnData

from scmint.data import generate_synthetic_data
from scmint.models.base import BaseModel, MintResult, TuneResult, component_names


class StubModel(BaseModel):
    """Deterministic backend that records how it was called.

    Component ``h`` selects ``keepX[h]`` genes starting at gene ``5 * h``,
    so consecutive components share genes.
    """

    def __init__(self, fail_on=None, **kwargs):
        super().__init__(**kwargs)
        self.fail_on = fail_on
        self.fit_calls = []
        self.tune_calls = []

    def fit(self, X, Y, study, ncomp, keepX):
        self.fit_calls.append({
            'X': X.copy(),
            'Y': np.asarray(Y),
            'study': np.asarray(study),
            'ncomp': ncomp,
            'keepX': list(keepX),
        })
        if self.fail_on == 'fit':
            raise RuntimeError("fit exploded")

        comps = component_names(ncomp)
        rng = np.random.default_rng(0)
        variates = pd.DataFrame(
            rng.normal(size=(X.shape[0], ncomp)), index=X.index, columns=comps
        )
        study = np.asarray(study).astype(str)
        partial = {s: variates[study == s] for s in np.unique(study)}

        loadings = pd.DataFrame(0.0, index=X.columns, columns=comps)
        for h, k in enumerate(keepX):
            start = 5 * h
            stop = min(start + k, X.shape[1])
            loadings.iloc[start:stop, h] = np.linspace(1.0, 0.1, stop - start)

        return MintResult(variates, partial, loadings, list(keepX))

    def tune(self, X, Y, study, ncomp, test_keepX, dist='mahalanobis.dist', measure='BER'):
        self.tune_calls.append({
            'ncomp': ncomp,
            'test_keepX': list(test_keepX),
            'dist': dist,
            'measure': measure,
        })
        if self.fail_on == 'tune':
            raise RuntimeError("tune exploded")

        grid = sorted(test_keepX)
        error_rate = pd.DataFrame(
            0.5, index=pd.Index(grid, name='keepX'), columns=component_names(ncomp)
        )
        return TuneResult(
            choice_keepX=[grid[0]] * ncomp,
            error_rate=error_rate,
            measure=measure,
            dist=dist,
        )


@pytest.fixture
def stub_model():
    """A fresh recording stub backend."""
    return StubModel()


@pytest.fixture
def make_adata():
    """Factory for small labelled AnnData objects."""

    def _make(
        n_cells=60,
        n_genes=40,
        n_batches=2,
        n_classes=3,
        max_value=10.0,
        seed=0,
    ):
        rng = np.random.default_rng(seed)
        X = rng.uniform(0.0, max_value, size=(n_cells, n_genes))
        X[0, 0] = max_value
        obs = pd.DataFrame(
            {
                'batch': [f"B{i % n_batches}" for i in range(n_cells)],
                'mix': [f"C{(i // n_batches) % n_classes}" for i in range(n_cells)],
            },
            index=[f"cell{i}" for i in range(n_cells)],
        )
        var = pd.DataFrame(
            {'highly_variable': np.arange(n_genes) % 2 == 0},
            index=[f"gene{j}" for j in range(n_genes)],
        )
        return AnnData(X=X, obs=obs, var=var)

    return _make


@pytest.fixture
def synthetic_adata():
    """200 cells x 500 genes, 3 classes, 2 batches, raw counts."""
    return generate_synthetic_data(
        n_cells=200, n_genes=500, n_cell_types=3, n_batches=2, seed=0
    )
