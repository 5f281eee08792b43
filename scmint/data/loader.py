"""Reading datasets and finding their batch and class columns."""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union
import pandas as pd
from anndata import AnnData
import scanpy as sc

logger = logging.getLogger(__name__)

# obs columns tried, in order, when no key is given
BATCH_KEY_CANDIDATES = ('batch', 'protocol', 'study', 'dataset', 'platform', 'sample')
CLASS_KEY_CANDIDATES = ('mix', 'cell_line', 'cell_type', 'celltype', 'label', 'annotation')

READERS = {
    '.h5ad': sc.read_h5ad,
    '.loom': sc.read_loom,
    '.csv': sc.read_csv,
}


def load_data(
    path: Union[str, Path],
    batch_key: Optional[str] = None,
    class_key: Optional[str] = None,
) -> AnnData:
    """Read a cells x genes dataset for MINT integration.

    Parameters
    ----------
    path : str or Path
        ``.h5ad`` or ``.loom`` file, or a ``.csv`` with cells as rows
    batch_key, class_key : str, optional
        obs columns that must be present; checked right after reading

    Returns
    -------
    adata : AnnData
        In-memory data

    Examples
    --------
    >>> adata = load_data("data/cellbench.h5ad", batch_key="batch", class_key="mix")
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    reader = READERS.get(path.suffix.lower())
    if reader is None:
        raise ValueError(
            f"Unsupported file format: {path.suffix}. Supported: {', '.join(READERS)}"
        )

    adata = reader(path)
    logger.info(f"Loaded {adata.n_obs} cells x {adata.n_vars} genes from {path}")

    missing = [k for k in (batch_key, class_key) if k is not None and k not in adata.obs]
    if missing:
        raise ValueError(
            f"{path} has no obs column(s) {missing}. Available: {list(adata.obs.columns)}"
        )
    return adata


def count_levels(adata: AnnData, key: str) -> int:
    """Number of distinct observed values in ``adata.obs[key]``."""
    return int(adata.obs[key].dropna().nunique())


def _detect_key(adata: AnnData, candidates: Sequence[str], what: str) -> Optional[str]:
    present = [c for c in candidates if c in adata.obs.columns]
    if not present:
        logger.warning(f"No {what} column found among {list(candidates)}")
        return None

    # MINT needs at least two levels; prefer a column that has them
    for col in present:
        n = count_levels(adata, col)
        if n >= 2:
            logger.info(f"Detected {what} column '{col}' ({n} levels)")
            return col

    col = present[0]
    logger.warning(
        f"{what.capitalize()} column '{col}' has {count_levels(adata, col)} level(s); "
        f"MINT needs at least 2"
    )
    return col


def detect_batch_key(adata: AnnData) -> Optional[str]:
    """Guess the obs column holding batches (protocols, studies)."""
    return _detect_key(adata, BATCH_KEY_CANDIDATES, 'batch')


def detect_label_key(adata: AnnData) -> Optional[str]:
    """Guess the obs column holding the known cell classes."""
    return _detect_key(adata, CLASS_KEY_CANDIDATES, 'class')


def class_batch_table(adata: AnnData, batch_key: str, class_key: str) -> pd.DataFrame:
    """Cells per class (rows) and batch (columns).

    A zero marks a class missing from a batch; MINT still runs, but that
    batch contributes nothing to the class in the shared components.
    """
    return pd.crosstab(adata.obs[class_key], adata.obs[batch_key])
