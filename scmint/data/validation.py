"""Entry checks run by ``integrate`` before anything is fitted."""

import logging
from typing import Optional, Sequence
import numpy as np
import pandas as pd
from anndata import AnnData

from ..errors import (
    InvalidArgument,
    InvalidInput,
    UnresolvableAnnotation,
    InvalidFeatureSubset,
    InsufficientGroups,
    LengthMismatch,
    DuplicateIdentifier,
)

logger = logging.getLogger(__name__)

OUTPUT_MODES = ('adata', 'both')


def check_output(output: str, ncomp) -> None:
    """``output`` must be 'adata' or 'both' and ``ncomp`` a positive integer."""
    if not isinstance(output, str) or output not in OUTPUT_MODES:
        raise InvalidArgument(f"output must be one of {OUTPUT_MODES}, got {output!r}")
    if isinstance(ncomp, bool) or not isinstance(ncomp, (int, np.integer)) or ncomp < 1:
        raise InvalidArgument(f"ncomp must be a positive integer, got {ncomp!r}")


def check_adata(adata, layer: Optional[str] = None):
    """Return the expression matrix of ``adata`` (cells x genes)."""
    if not isinstance(adata, AnnData):
        raise InvalidInput(f"adata must be an AnnData object, got {type(adata).__name__}")

    if layer is None:
        X = adata.X
    elif isinstance(layer, str) and layer in adata.layers:
        X = adata.layers[layer]
    else:
        raise InvalidInput(
            f"Layer '{layer}' not found. Available layers: {list(adata.layers.keys())}"
        )

    if X is None or len(X.shape) != 2 or X.shape[0] == 0 or X.shape[1] == 0:
        raise InvalidInput("adata must hold a non-empty cells x genes expression matrix")
    return X


def resolve_obs_key(adata: AnnData, key: str, what: str) -> pd.Series:
    """Return ``adata.obs[key]``, ``what`` naming the role in error messages."""
    if not isinstance(key, str) or key not in adata.obs.columns:
        raise UnresolvableAnnotation(
            f"{what} key '{key}' not found in adata.obs. "
            f"Available columns: {list(adata.obs.columns)}"
        )
    return adata.obs[key]


def resolve_gene_mask(
    adata: AnnData,
    genes: Optional[Sequence[str]] = None,
    gene_key: Optional[str] = None,
) -> Optional[np.ndarray]:
    """Boolean mask over ``adata.var_names`` for the requested genes.

    Parameters
    ----------
    adata : AnnData
        Data object
    genes : sequence of str, optional
        Explicit gene names; all must exist
    gene_key : str, optional
        Name of a boolean column in ``adata.var``

    Returns
    -------
    mask : np.ndarray or None
        None when no subset was requested (use all genes)
    """
    if genes is not None and gene_key is not None:
        raise InvalidFeatureSubset("Pass either genes or gene_key, not both")

    if genes is not None:
        if isinstance(genes, str):
            raise InvalidFeatureSubset(
                "genes must be a list of gene names; use gene_key for a var column"
            )
        genes = [str(g) for g in genes]
        missing = [g for g in genes if g not in set(adata.var_names)]
        if missing:
            shown = ', '.join(missing[:10])
            raise InvalidFeatureSubset(
                f"{len(missing)} of the given genes do not exist in adata: {shown}"
            )
        mask = adata.var_names.isin(genes)

    elif gene_key is not None:
        if not isinstance(gene_key, str) or gene_key not in adata.var.columns:
            raise UnresolvableAnnotation(
                f"gene_key '{gene_key}' not found in adata.var. "
                f"Available columns: {list(adata.var.columns)}"
            )
        column = adata.var[gene_key]
        if not pd.api.types.is_bool_dtype(column):
            raise InvalidFeatureSubset(
                f"adata.var['{gene_key}'] must be boolean, got dtype {column.dtype}"
            )
        mask = column.fillna(False).to_numpy(dtype=bool)

    else:
        return None

    if not mask.any():
        raise InvalidFeatureSubset("The gene subset is empty")
    return np.asarray(mask, dtype=bool)


def check_levels(labels: pd.Series, what: str) -> list:
    """Return the observed levels of ``labels``; at least two are required."""
    levels = pd.unique(labels.dropna())
    if len(levels) < 2:
        raise InsufficientGroups(
            f"There must be more than one {what} in the data to run MINT "
            f"(found {len(levels)})"
        )
    return list(levels)


def _positive_ints(values, name: str) -> list:
    if isinstance(values, (str, bytes)) or not hasattr(values, '__iter__'):
        raise InvalidArgument(f"{name} must be a sequence of positive integers, got {values!r}")
    values = list(values)
    for v in values:
        if isinstance(v, bool) or not isinstance(v, (int, np.integer)) or v < 1:
            raise InvalidArgument(f"{name} must contain positive integers, got {v!r}")
    return [int(v) for v in values]


def check_keepX(keepX: Sequence[int], ncomp: int) -> list:
    """``keepX`` must give one positive count per component."""
    keepX = _positive_ints(keepX, 'keepX')
    if len(keepX) != ncomp:
        raise LengthMismatch(f"The length of keepX ({len(keepX)}) should be ncomp ({ncomp})")
    return keepX


def check_tune_grid(grid: Sequence[int]) -> list:
    """The tuning grid must be a non-empty sequence of positive counts."""
    grid = _positive_ints(grid, 'tune_keepX')
    if not grid:
        raise InvalidArgument("tune_keepX must not be empty")
    return grid


def check_unique(obs_names: pd.Index, var_names: pd.Index) -> None:
    """Cell and gene names must be unique."""
    if obs_names.has_duplicates:
        raise DuplicateIdentifier(
            "There are duplicate cell names - change to make them unique"
        )
    if var_names.has_duplicates:
        raise DuplicateIdentifier(
            "There are duplicate gene names - change to make them unique"
        )
