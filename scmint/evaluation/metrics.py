"""Metrics for assessing MINT integration results."""

import logging
from itertools import combinations
from typing import Dict, Iterable, Optional
import numpy as np
import pandas as pd
from anndata import AnnData
from sklearn.metrics import (
    accuracy_score,
    balanced_accuracy_score,
    silhouette_score,
)

logger = logging.getLogger(__name__)


def balanced_error_rate(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Balanced error rate: the mean of the per-class error rates.

    Parameters
    ----------
    y_true : np.ndarray
        Ground truth labels
    y_pred : np.ndarray
        Predicted labels

    Returns
    -------
    ber : float
        Value in [0, 1]; robust to unequal class sizes

    Examples
    --------
    >>> balanced_error_rate(['a', 'a', 'b'], ['a', 'b', 'b'])
    0.25
    """
    y_true_str = np.asarray(y_true, dtype=str)
    y_pred_str = np.asarray(y_pred, dtype=str)
    return float(1.0 - balanced_accuracy_score(y_true_str, y_pred_str))


def misclassification_rate(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Overall fraction of misclassified cells."""
    y_true_str = np.asarray(y_true, dtype=str)
    y_pred_str = np.asarray(y_pred, dtype=str)
    return float(1.0 - accuracy_score(y_true_str, y_pred_str))


def marker_overlap(sets: Dict[str, Iterable[str]]) -> pd.DataFrame:
    """Sizes of the Venn regions of several named marker sets.

    Each row is one non-empty region: genes found in exactly the sets
    flagged ``True`` and in none of the others.

    Parameters
    ----------
    sets : dict
        Mapping of set name to a collection of gene names

    Returns
    -------
    overlap : pd.DataFrame
        One boolean column per set, plus ``n_genes`` and ``genes``

    Examples
    --------
    >>> overlap = marker_overlap({
    ...     'mint': adata.var_names[adata.var['mint_marker']],
    ...     'de': de_table.index,
    ... })
    """
    names = list(sets)
    if not names:
        raise ValueError("At least one set is required")
    members = {name: set(genes) for name, genes in sets.items()}

    rows = []
    for k in range(len(names), 0, -1):
        for combo in combinations(names, k):
            inside = set.intersection(*(members[n] for n in combo))
            outside = set().union(*(members[n] for n in names if n not in combo))
            region = inside - outside
            if not region:
                continue
            row = {n: n in combo for n in names}
            row['n_genes'] = len(region)
            row['genes'] = sorted(region)
            rows.append(row)

    return pd.DataFrame(rows, columns=names + ['n_genes', 'genes'])


def compute_integration_metrics(
    adata: AnnData,
    batch_key: str,
    class_key: str,
    use_rep: str = 'mint_comps_global',
    max_cells: Optional[int] = 10000,
    seed: int = 42,
) -> Dict[str, float]:
    """Score how well an embedding separates classes and mixes batches.

    Parameters
    ----------
    adata : AnnData
        Data with an embedding in ``.obsm[use_rep]``
    batch_key : str
        Batch column in ``.obs``
    class_key : str
        Class column in ``.obs``
    use_rep : str, default='mint_comps_global'
        Embedding to score
    max_cells : int, optional
        Subsample to this many cells (silhouette is quadratic)
    seed : int, default=42
        Random seed for subsampling

    Returns
    -------
    results : dict
        ``silhouette_class`` (higher is better separation),
        ``batch_mixing`` = 1 - |silhouette of batches| (higher is better
        mixing) and ``n_markers`` when ``var['mint_marker']`` exists

    Examples
    --------
    >>> metrics = compute_integration_metrics(adata, 'batch', 'mix')
    >>> print(f"Class silhouette: {metrics['silhouette_class']:.3f}")
    """
    if use_rep not in adata.obsm:
        raise ValueError(f"Embedding '{use_rep}' not found in adata.obsm")

    X = np.asarray(adata.obsm[use_rep], dtype=float)
    classes = adata.obs[class_key].astype(str).to_numpy()
    batches = adata.obs[batch_key].astype(str).to_numpy()

    # cells with missing coordinates cannot be scored
    keep = np.isfinite(X).all(axis=1)
    X, classes, batches = X[keep], classes[keep], batches[keep]

    if max_cells is not None and X.shape[0] > max_cells:
        rng = np.random.default_rng(seed)
        idx = rng.choice(X.shape[0], size=max_cells, replace=False)
        X, classes, batches = X[idx], classes[idx], batches[idx]

    results = {}
    try:
        results['silhouette_class'] = float(silhouette_score(X, classes))
    except ValueError as e:
        logger.warning(f"Could not compute class silhouette: {e}")
    try:
        results['batch_mixing'] = float(1.0 - abs(silhouette_score(X, batches)))
    except ValueError as e:
        logger.warning(f"Could not compute batch silhouette: {e}")

    if 'mint_marker' in adata.var:
        results['n_markers'] = int(adata.var['mint_marker'].sum())

    return results
