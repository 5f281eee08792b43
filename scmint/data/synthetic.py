"""Generate synthetic single cell data for testing."""

import logging
import numpy as np
import pandas as pd
from anndata import AnnData

logger = logging.getLogger(__name__)


def generate_synthetic_data(
    n_cells: int = 1000,
    n_genes: int = 2000,
    n_cell_types: int = 3,
    n_batches: int = 2,
    batch_effect_strength: float = 0.5,
    noise_level: float = 0.5,
    genes_per_type: int = 20,
    depth: float = 5.0,
    seed: int = 42,
) -> AnnData:
    """Generate synthetic single cell counts with known classes and batches.

    Creates data with:
    - ``genes_per_type`` up-regulated marker genes for each class
    - A gene-wise shift for each batch
    - Poisson counts

    Parameters
    ----------
    n_cells : int, default=1000
        Number of cells to generate
    n_genes : int, default=2000
        Number of genes
    n_cell_types : int, default=3
        Number of distinct classes
    n_batches : int, default=2
        Number of batches
    batch_effect_strength : float, default=0.5
        Standard deviation of the per-batch log-scale shift
    noise_level : float, default=0.5
        Standard deviation of per-cell log-scale noise
    genes_per_type : int, default=20
        Number of marker genes per class
    depth : float, default=5.0
        Mean log-count scale; counts of order ``exp(depth)`` exceed the
        log-scale threshold used by ``integrate``
    seed : int, default=42
        Random seed for reproducibility

    Returns
    -------
    adata : AnnData
        Synthetic annotated data matrix with:
        - .obs['mix']: class labels (also in .obs['cell_type'])
        - .obs['batch']: batch assignments
        - .var['marker_for']: class this gene is a marker for ('' if none)

    Examples
    --------
    >>> adata = generate_synthetic_data(n_cells=200, n_genes=500)
    >>> adata.obs['batch'].nunique()
    2
    """
    if n_cell_types * genes_per_type > n_genes:
        raise ValueError(
            f"n_genes ({n_genes}) must be at least n_cell_types * genes_per_type "
            f"({n_cell_types * genes_per_type})"
        )

    rng = np.random.default_rng(seed)

    logger.info(f"Generating synthetic data: {n_cells} cells x {n_genes} genes")

    cell_types = [f"CellType_{i + 1}" for i in range(n_cell_types)]
    batches = [f"Batch_{i + 1}" for i in range(n_batches)]

    # every batch and every class is represented
    type_idx = np.arange(n_cells) % n_cell_types
    batch_idx = (np.arange(n_cells) // n_cell_types) % n_batches
    perm = rng.permutation(n_cells)
    type_idx, batch_idx = type_idx[perm], batch_idx[perm]

    profiles = np.zeros((n_cell_types, n_genes))
    marker_for = np.array([''] * n_genes, dtype=object)
    for i in range(n_cell_types):
        start, end = i * genes_per_type, (i + 1) * genes_per_type
        profiles[i, start:end] = 2.0
        marker_for[start:end] = cell_types[i]

    baseline = rng.normal(depth - 2.0, 1.0, size=n_genes)
    batch_shift = rng.normal(0.0, batch_effect_strength, size=(n_batches, n_genes))

    log_mean = (
        baseline[None, :]
        + profiles[type_idx]
        + batch_shift[batch_idx]
        + rng.normal(0.0, noise_level, size=(n_cells, n_genes))
    )
    X = rng.poisson(np.exp(log_mean)).astype(np.float32)

    gene_names = [f"Gene_{i + 1}" for i in range(n_genes)]
    var_df = pd.DataFrame({'marker_for': marker_for}, index=gene_names)

    labels = np.array(cell_types)[type_idx]
    obs_df = pd.DataFrame(
        {
            'mix': pd.Categorical(labels, categories=cell_types),
            'cell_type': pd.Categorical(labels, categories=cell_types),
            'batch': pd.Categorical(np.array(batches)[batch_idx], categories=batches),
        },
        index=[f"Cell_{i + 1}" for i in range(n_cells)],
    )

    adata = AnnData(X=X, obs=obs_df, var=var_df)

    adata.uns['synthetic'] = True
    adata.uns['n_cell_types'] = n_cell_types
    adata.uns['n_batches'] = n_batches

    logger.info(f"Generated data with {n_cell_types} cell types and {n_batches} batches")

    return adata
