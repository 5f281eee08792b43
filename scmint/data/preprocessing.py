"""Data preprocessing utilities."""

import logging
from typing import Optional, List, Tuple
import numpy as np
from anndata import AnnData
from scipy import sparse
import scanpy as sc

logger = logging.getLogger(__name__)

# values above this are taken as raw (unlogged) counts
LOG_THRESHOLD = 100.0


def log_transform_if_needed(X, threshold: float = LOG_THRESHOLD) -> Tuple[object, bool]:
    """Replace ``X`` by ``log2(X + 1)`` if its maximum exceeds ``threshold``.

    The decision only looks at the values, so calling this again on the
    transformed matrix leaves it untouched.

    Parameters
    ----------
    X : np.ndarray or scipy.sparse matrix
        Expression matrix
    threshold : float, default=100
        Maximum value still considered log-scale

    Returns
    -------
    X : np.ndarray or scipy.sparse matrix
        Transformed copy, or the input itself when not transformed
    transformed : bool
        Whether the transformation was applied
    """
    if X.max() <= threshold:
        return X, False

    logger.info(f"Maximum expression exceeds {threshold:g}; applying log2(x + 1)")
    if sparse.issparse(X):
        X = sparse.csr_matrix(X, dtype=float, copy=True)
        X.data = np.log2(X.data + 1)
    else:
        X = np.log2(np.asarray(X, dtype=float) + 1)
    return X, True


def preprocess_data(
    adata: AnnData,
    batch_key: Optional[str] = None,
    n_top_genes: int = 2000,
    min_genes: int = 200,
    min_cells: int = 3,
    target_sum: float = 1e4,
    copy: bool = True,
) -> AnnData:
    """Standard preprocessing ahead of MINT integration.

    Steps:
    1. Filter cells and genes
    2. Normalize counts
    3. Log transform
    4. Flag highly variable genes in ``.var['highly_variable']``

    Genes are flagged rather than removed, so the flag can be passed to
    ``integrate(..., gene_key='highly_variable')``.

    Parameters
    ----------
    adata : AnnData
        Input data with raw counts in ``.X``
    batch_key : str, optional
        Batch key for batch-aware HVG selection
    n_top_genes : int, default=2000
        Number of highly variable genes to flag
    min_genes : int, default=200
        Minimum number of genes per cell
    min_cells : int, default=3
        Minimum number of cells per gene
    target_sum : float, default=1e4
        Target sum for normalization
    copy : bool, default=True
        Whether to return a copy

    Returns
    -------
    adata : AnnData
        Log-normalized data; raw counts in ``.layers['counts']``
    """
    if adata.isbacked:
        adata = adata.to_memory()
    elif copy:
        adata = adata.copy()

    logger.info("Starting preprocessing...")
    logger.info(f"Initial: {adata.n_obs} cells x {adata.n_vars} genes")

    sc.pp.filter_cells(adata, min_genes=min_genes)
    sc.pp.filter_genes(adata, min_cells=min_cells)

    logger.info(f"After filtering: {adata.n_obs} cells x {adata.n_vars} genes")

    adata.layers['counts'] = adata.X.copy()

    logger.info("Normalizing counts...")
    sc.pp.normalize_total(adata, target_sum=target_sum)
    sc.pp.log1p(adata)

    n_top = min(n_top_genes, adata.n_vars)
    logger.info(f"Flagging {n_top} highly variable genes...")
    if batch_key is not None and batch_key in adata.obs:
        sc.pp.highly_variable_genes(adata, n_top_genes=n_top, batch_key=batch_key)
    else:
        sc.pp.highly_variable_genes(adata, n_top_genes=n_top)

    logger.info(f"Flagged {int(adata.var['highly_variable'].sum())} HVGs")
    logger.info("Preprocessing completed")

    return adata


def subset_data(
    adata: AnnData,
    obs_filter: Optional[dict] = None,
    var_filter: Optional[dict] = None,
    studies: Optional[List[str]] = None,
    cell_types: Optional[List[str]] = None,
    n_cells: Optional[int] = None,
    study_col: str = 'batch',
    cell_type_col: str = 'mix',
    copy: bool = True,
) -> AnnData:
    """Subset single cell data, e.g. to the protocols to be integrated.

    Parameters
    ----------
    adata : AnnData
        Input data
    obs_filter : dict, optional
        Dictionary mapping obs columns to values to keep.
        Example: {'batch': ['10x', 'CELseq2'], 'tissue': 'lung'}
    var_filter : dict, optional
        Dictionary mapping var columns to values to keep
    studies : list of str, optional
        Batches to keep (shortcut for obs_filter on ``study_col``)
    cell_types : list of str, optional
        Classes to keep (shortcut for obs_filter on ``cell_type_col``)
    n_cells : int, optional
        Randomly downsample to this many cells
    study_col : str, default='batch'
        Name of the batch column
    cell_type_col : str, default='mix'
        Name of the class column
    copy : bool, default=True
        Whether to return a copy

    Returns
    -------
    adata : AnnData
        Subsetted data

    Examples
    --------
    >>> adata_sub = subset_data(adata, studies=['10x', 'CELseq2'])
    >>> adata_sub = subset_data(adata, cell_types=['H2228', 'HCC827'])
    """
    if adata.isbacked:
        adata = adata.to_memory()
    elif copy:
        adata = adata.copy()
    logger.info(f"Starting subset. Initial: {adata.n_obs} cells")

    obs_filter = dict(obs_filter or {})

    if studies is not None:
        obs_filter[study_col] = studies
    if cell_types is not None:
        obs_filter[cell_type_col] = cell_types

    if obs_filter:
        mask = np.ones(adata.n_obs, dtype=bool)

        for col, values in obs_filter.items():
            if col not in adata.obs.columns:
                raise ValueError(
                    f"Column '{col}' not found in obs. Columns: {adata.obs.columns.tolist()}"
                )

            if not isinstance(values, (list, tuple, set)):
                values = [values]

            col_mask = adata.obs[col].isin(values).to_numpy()
            mask &= col_mask

            logger.info(f"Filter '{col}': {col_mask.sum()} cells match")

        adata = adata[mask].copy()
        logger.info(f"After obs filter: {adata.n_obs} cells")

    if var_filter:
        mask = np.ones(adata.n_vars, dtype=bool)

        for col, values in var_filter.items():
            if col not in adata.var.columns:
                raise ValueError(f"Column '{col}' not found in var")

            if not isinstance(values, (list, tuple, set)):
                values = [values]

            mask &= adata.var[col].isin(values).to_numpy()

        adata = adata[:, mask].copy()
        logger.info(f"After var filter: {adata.n_vars} genes")

    if n_cells is not None and n_cells < adata.n_obs:
        logger.info(f"Downsampling to {n_cells} cells...")
        sc.pp.subsample(adata, n_obs=n_cells, random_state=42)

    logger.info(f"Final: {adata.n_obs} cells x {adata.n_vars} genes")

    return adata
