"""
Tests for loading, preprocessing, running-time and synthetic data helpers.
"""

import logging

import numpy as np
import pandas as pd
import pytest
from scipy import sparse

from scmint.data import (
    LOG_THRESHOLD,
    append_running_time,
    class_batch_table,
    count_levels,
    detect_batch_key,
    detect_label_key,
    generate_synthetic_data,
    get_running_time,
    load_data,
    log_transform_if_needed,
    preprocess_data,
    subset_data,
)


class TestLogTransform:

    def test_raw_counts_transformed(self):
        X = np.array([[500.0, 0.0], [3.0, 1.0]])
        out, transformed = log_transform_if_needed(X)

        assert transformed
        np.testing.assert_allclose(out, np.log2(X + 1))
        # input left as it was
        assert X[0, 0] == 500.0

    def test_idempotent(self):
        X = np.array([[500.0, 0.0], [3.0, 1.0]])
        once, _ = log_transform_if_needed(X)
        twice, transformed = log_transform_if_needed(once)

        assert not transformed
        assert twice is once

    def test_threshold_is_exclusive(self):
        X = np.array([[LOG_THRESHOLD, 1.0]])
        out, transformed = log_transform_if_needed(X)
        assert not transformed
        assert out is X

    def test_sparse(self):
        dense = np.array([[0.0, 1000.0], [7.0, 0.0]])
        X = sparse.csr_matrix(dense)
        out, transformed = log_transform_if_needed(X)

        assert transformed
        assert sparse.issparse(out)
        np.testing.assert_allclose(out.toarray(), np.log2(dense + 1))
        np.testing.assert_array_equal(X.toarray(), dense)


class TestRunningTime:

    def test_absent_log(self, make_adata):
        adata = make_adata()
        log = get_running_time(adata)
        assert log.empty
        assert list(log.columns) == ['method', 'method_type', 'time']

    def test_create_and_append(self, make_adata):
        adata = make_adata()
        append_running_time(adata, 'harmony', 'embed', 1.0)
        log = append_running_time(adata, 'mixOmics_mint', 'visualisation', 2.5)

        assert list(log['method']) == ['harmony', 'mixOmics_mint']
        assert list(log['time']) == [1.0, 2.5]
        assert adata.uns['running_time'] is log

    def test_dict_log_converted(self, make_adata):
        adata = make_adata()
        adata.uns['running_time'] = {
            'method': np.array(['scanorama']),
            'method_type': np.array(['embed']),
            'time': np.array([3.0]),
        }

        log = append_running_time(adata, 'mixOmics_mint', 'visualisation', 0.5)

        assert isinstance(log, pd.DataFrame)
        assert list(log['method']) == ['scanorama', 'mixOmics_mint']


class TestSynthetic:

    def test_shape_and_annotations(self):
        adata = generate_synthetic_data(n_cells=90, n_genes=80, n_cell_types=3,
                                        n_batches=3, genes_per_type=5)

        assert adata.shape == (90, 80)
        assert adata.obs['mix'].nunique() == 3
        assert adata.obs['batch'].nunique() == 3
        assert (adata.var['marker_for'] != '').sum() == 15
        assert adata.X.max() > LOG_THRESHOLD

    def test_every_batch_has_every_class(self):
        adata = generate_synthetic_data(n_cells=60, n_genes=60, n_batches=2)
        table = pd.crosstab(adata.obs['batch'], adata.obs['mix'])
        assert (table.to_numpy() > 0).all()

    def test_reproducible(self):
        a = generate_synthetic_data(n_cells=30, n_genes=60, seed=7)
        b = generate_synthetic_data(n_cells=30, n_genes=60, seed=7)
        np.testing.assert_array_equal(a.X, b.X)

    def test_too_few_genes(self):
        with pytest.raises(ValueError, match="n_genes"):
            generate_synthetic_data(n_genes=10, n_cell_types=3, genes_per_type=20)


class TestPreprocessing:

    def test_preprocess(self, synthetic_adata):
        adata = preprocess_data(synthetic_adata, n_top_genes=50, min_genes=10)

        assert 'counts' in adata.layers
        assert adata.var['highly_variable'].dtype == bool
        assert 0 < adata.var['highly_variable'].sum() <= 50
        assert adata.X.max() < LOG_THRESHOLD
        # input is copied
        assert 'counts' not in synthetic_adata.layers

    def test_subset_studies(self, synthetic_adata):
        sub = subset_data(synthetic_adata, studies=['Batch_1'])
        assert set(sub.obs['batch']) == {'Batch_1'}
        assert sub.n_vars == synthetic_adata.n_vars

    def test_subset_cell_types_and_downsample(self, synthetic_adata):
        sub = subset_data(synthetic_adata, cell_types=['CellType_1', 'CellType_2'], n_cells=50)
        assert sub.n_obs == 50
        assert set(sub.obs['mix']) <= {'CellType_1', 'CellType_2'}

    def test_subset_var_filter(self, synthetic_adata):
        sub = subset_data(synthetic_adata, var_filter={'marker_for': 'CellType_3'})
        assert sub.n_vars == 20

    def test_subset_unknown_column(self, synthetic_adata):
        with pytest.raises(ValueError, match="not found in obs"):
            subset_data(synthetic_adata, obs_filter={'protocol': '10x'})


class TestLoader:

    def test_load_h5ad(self, synthetic_adata, tmp_path):
        path = tmp_path / 'data.h5ad'
        synthetic_adata.write_h5ad(path)

        adata = load_data(path)
        assert adata.shape == synthetic_adata.shape
        assert list(adata.obs['batch'].cat.categories) == ['Batch_1', 'Batch_2']

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_data(tmp_path / 'missing.h5ad')

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / 'data.txt'
        path.write_text('x')
        with pytest.raises(ValueError, match="Unsupported"):
            load_data(path)

    def test_detect_keys(self, make_adata):
        adata = make_adata()
        assert detect_batch_key(adata) == 'batch'
        assert detect_label_key(adata) == 'mix'

        adata.obs = adata.obs.rename(columns={'batch': 'protocol', 'mix': 'cell_line'})
        assert detect_batch_key(adata) == 'protocol'
        assert detect_label_key(adata) == 'cell_line'

    def test_detect_nothing(self, make_adata):
        adata = make_adata()
        adata.obs = adata.obs[[]]
        assert detect_batch_key(adata) is None
        assert detect_label_key(adata) is None

    def test_load_checks_required_columns(self, synthetic_adata, tmp_path):
        path = tmp_path / 'data.h5ad'
        synthetic_adata.write_h5ad(path)

        adata = load_data(path, batch_key='batch', class_key='mix')
        assert adata.n_obs == synthetic_adata.n_obs

        with pytest.raises(ValueError, match="protocol"):
            load_data(path, batch_key='protocol', class_key='mix')

    def test_detect_prefers_column_with_two_levels(self, make_adata):
        adata = make_adata()
        adata.obs['protocol'] = adata.obs['batch']
        adata.obs['batch'] = 'only'

        assert detect_batch_key(adata) == 'protocol'

    def test_detect_single_level_warns(self, make_adata, caplog):
        adata = make_adata()
        adata.obs['mix'] = 'C0'

        with caplog.at_level(logging.WARNING, logger='scmint.data.loader'):
            assert detect_label_key(adata) == 'mix'
        assert 'at least 2' in caplog.text

    def test_count_levels_ignores_missing(self, make_adata):
        adata = make_adata(n_batches=3)
        adata.obs['batch'] = adata.obs['batch'].astype(object)
        adata.obs.iloc[0, adata.obs.columns.get_loc('batch')] = np.nan
        assert count_levels(adata, 'batch') == 3

    def test_class_batch_table(self, make_adata):
        adata = make_adata(n_batches=2)
        table = class_batch_table(adata, 'batch', 'mix')

        assert list(table.columns) == ['B0', 'B1']
        assert table.to_numpy().sum() == adata.n_obs
