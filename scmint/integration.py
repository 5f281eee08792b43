"""MINT sPLS-DA integration of batches with known cell classes.

``integrate`` checks an AnnData object, optionally tunes the number of genes
selected per component, fits MINT sPLS-DA and stores the results:

- ``adata.var['mint_marker']``: whether a gene was selected on any component
- ``adata.obsm['mint_comps_global']``: global components
- ``adata.obsm['mint_comps_<batch>']``: per-batch components, NaN for cells
  of other batches
- ``adata.uns['running_time']``: one more (method, method_type, time) row

Failures never raise: the dataset is returned unchanged apart from the
running-time row.
"""

import logging
import time
from typing import Optional, Sequence, Union
import numpy as np
import pandas as pd
from anndata import AnnData
from scipy import sparse

from .errors import MintError, InvalidArgument, ExternalModelFailure
from .models import BaseModel, MintOutput, get_model
from .data.preprocessing import log_transform_if_needed
from .data.running_time import append_running_time
from .data.validation import (
    check_output,
    check_adata,
    resolve_obs_key,
    resolve_gene_mask,
    check_levels,
    check_keepX,
    check_tune_grid,
    check_unique,
)

logger = logging.getLogger(__name__)

METHOD_NAME = 'mixOmics_mint'
METHOD_TYPE = 'visualisation'

MARKER_KEY = 'mint_marker'
GLOBAL_KEY = 'mint_comps_global'
BATCH_KEY_PREFIX = 'mint_comps_'

# classification rule and error measure used for tuning
DIST = 'mahalanobis.dist'
MEASURE = 'BER'


def batch_embedding_key(level) -> str:
    """obsm key holding the components of one batch."""
    return f"{BATCH_KEY_PREFIX}{level}"


def integrate(
    adata: AnnData,
    batch_key: str = 'batch',
    class_key: str = 'mix',
    genes: Optional[Sequence[str]] = None,
    gene_key: Optional[str] = None,
    ncomp: int = 3,
    keepX: Sequence[int] = (50, 50, 50),
    tune_keepX: Optional[Sequence[int]] = None,
    output: str = 'adata',
    verbose: bool = False,
    model: Union[str, BaseModel] = 'splsda',
    model_params: Optional[dict] = None,
    layer: Optional[str] = None,
    log_file: Optional[str] = None,
):
    """Integrate batches with MINT sPLS-DA and store the results in ``adata``.

    Parameters
    ----------
    adata : AnnData
        Cells x genes data with batch and class labels in ``.obs``
    batch_key : str, default='batch'
        Column in ``.obs`` with the batch/protocol of each cell
    class_key : str, default='mix'
        Column in ``.obs`` with the known class (cell type) of each cell
    genes : sequence of str, optional
        Use only these genes (all must exist)
    gene_key : str, optional
        Use only genes flagged True in this boolean ``.var`` column
        (e.g. 'highly_variable'). Mutually exclusive with ``genes``
    ncomp : int, default=3
        Number of components (n_classes - 1 is a good choice)
    keepX : sequence of int, default=(50, 50, 50)
        Number of genes to select on each component; length ``ncomp``.
        Ignored when ``tune_keepX`` is given
    tune_keepX : sequence of int, optional
        Grid of gene counts assessed on each component by cross-validation
        (balanced error rate, Mahalanobis distance). The tuned values
        replace ``keepX``
    output : {'adata', 'both'}, default='adata'
        'adata' returns the AnnData; 'both' returns ``(adata, MintOutput)``
    verbose : bool, default=False
        Log failures with traceback and append them to ``log_file``
    model : str or BaseModel, default='splsda'
        Backend name from ``AVAILABLE_MODELS`` or a model instance
    model_params : dict, optional
        Parameters for the backend when ``model`` is a name
    layer : str, optional
        Use ``adata.layers[layer]`` instead of ``adata.X``
    log_file : str, optional
        File receiving error lines when ``verbose`` is True

    Returns
    -------
    adata : AnnData
        The input object, updated in place on success
    mint : MintOutput or None
        Only when ``output='both'``; None if integration failed

    Examples
    --------
    >>> adata = integrate(adata, batch_key='batch', class_key='mix',
    ...                   ncomp=2, keepX=[20, 20])
    >>> adata.var['mint_marker'].sum()
    >>> adata, mint = integrate(adata, tune_keepX=range(10, 101, 10), output='both')
    >>> mint.tune.choice_keepX
    """
    t0 = time.time()
    mint = None

    try:
        mint, updates = _run_integration(
            adata,
            batch_key=batch_key,
            class_key=class_key,
            genes=genes,
            gene_key=gene_key,
            ncomp=ncomp,
            keepX=keepX,
            tune_keepX=tune_keepX,
            output=output,
            model=model,
            model_params=model_params,
            layer=layer,
        )
        _apply_updates(adata, updates)
    except MintError as e:
        _report_failure(e, verbose, log_file)
        mint = None
    except Exception as e:
        err = MintError(f"Unexpected error: {type(e).__name__}: {e}")
        err.__cause__ = e
        _report_failure(err, verbose, log_file)
        mint = None

    elapsed = time.time() - t0
    if isinstance(adata, AnnData):
        append_running_time(adata, METHOD_NAME, METHOD_TYPE, elapsed)
        if mint is not None:
            logger.info(
                f"MINT integration completed in {elapsed:.1f}s "
                f"({int(adata.var[MARKER_KEY].sum())} markers)"
            )
    else:
        logger.warning("Running time not recorded: input is not an AnnData object")

    if output == 'both':
        return adata, mint
    return adata


def _resolve_model(model, model_params) -> BaseModel:
    if isinstance(model, BaseModel):
        return model
    try:
        return get_model(model, **(model_params or {}))
    except (ValueError, TypeError) as e:
        raise InvalidArgument(str(e)) from e


def _to_dense(X) -> np.ndarray:
    if sparse.issparse(X):
        return X.toarray()
    return np.asarray(X)


def _run_integration(
    adata,
    batch_key,
    class_key,
    genes,
    gene_key,
    ncomp,
    keepX,
    tune_keepX,
    output,
    model,
    model_params,
    layer,
):
    """Validate, tune, fit and compute the updates; never touches ``adata``."""
    check_output(output, ncomp)
    backend = _resolve_model(model, model_params)

    X = check_adata(adata, layer)
    batch = resolve_obs_key(adata, batch_key, 'batch')
    labels = resolve_obs_key(adata, class_key, 'class')
    gene_mask = resolve_gene_mask(adata, genes=genes, gene_key=gene_key)

    batch_levels = check_levels(batch, 'batch')
    check_levels(labels, 'cell type')

    if tune_keepX is None:
        keepX = check_keepX(keepX, ncomp)
    else:
        tune_keepX = check_tune_grid(tune_keepX)

    var_names = adata.var_names
    if gene_mask is not None:
        X = X[:, gene_mask]
        var_names = var_names[gene_mask]
    check_unique(adata.obs_names, var_names)

    X, _ = log_transform_if_needed(X)

    X_df = pd.DataFrame(_to_dense(X), index=adata.obs_names, columns=var_names)
    Y = np.asarray(labels, dtype=object)
    study = np.asarray(batch, dtype=object)

    tune_res = None
    if tune_keepX is not None:
        logger.info(f"Tuning keepX over {list(tune_keepX)} ({MEASURE}, {DIST})")
        try:
            tune_res = backend.tune(
                X_df, Y, study, ncomp, list(tune_keepX), dist=DIST, measure=MEASURE
            )
        except Exception as e:
            raise ExternalModelFailure(f"Tuning failed: {e}") from e
        keepX = list(tune_res.choice_keepX)
        logger.info(f"Tuned keepX: {keepX}")

    try:
        result = backend.fit(X_df, Y, study, ncomp, keepX)
        updates = _collect_updates(adata, result, batch_levels, gene_mask)
    except Exception as e:
        raise ExternalModelFailure(f"MINT sPLS-DA failed: {e}") from e

    updates['uns'] = {
        'batch_key': batch_key,
        'class_key': class_key,
        'ncomp': int(ncomp),
        'keepX': [int(k) for k in keepX],
        'n_genes': int(len(var_names)),
        'tuned': tune_res is not None,
    }
    return MintOutput(splsda=result, tune=tune_res), updates


def _collect_updates(adata: AnnData, result, batch_levels, gene_mask=None) -> dict:
    """Marker flags and embeddings computed from a fitted model.

    Only genes inside ``gene_mask`` can be flagged, so a duplicated name
    outside the fitted subset stays False.
    """
    markers = result.markers()
    if gene_mask is None:
        gene_mask = np.ones(adata.n_vars, dtype=bool)
    marker_flags = np.zeros(adata.n_vars, dtype=bool)
    marker_flags[gene_mask] = adata.var_names[gene_mask].isin(markers)

    variates = result.variates
    missing = adata.obs_names.difference(variates.index)
    if len(missing) > 0:
        raise ValueError(f"Model returned no components for {len(missing)} cells")
    global_emb = variates.reindex(adata.obs_names).astype(float)

    per_batch = {}
    for level in batch_levels:
        partial = result.variates_partial.get(str(level))
        if partial is None:
            raise ValueError(f"Model returned no partial components for batch '{level}'")

        emb = pd.DataFrame(np.nan, index=global_emb.index, columns=global_emb.columns)
        emb.loc[partial.index, :] = partial.reindex(columns=emb.columns).to_numpy(dtype=float)
        per_batch[batch_embedding_key(level)] = emb

    return {'markers': marker_flags, 'global': global_emb, 'per_batch': per_batch}


def _apply_updates(adata: AnnData, updates: dict) -> None:
    adata.var[MARKER_KEY] = updates['markers']
    adata.obsm[GLOBAL_KEY] = updates['global']
    for key, emb in updates['per_batch'].items():
        adata.obsm[key] = emb
    adata.uns['mint'] = updates['uns']


def _report_failure(err: Exception, verbose: bool, log_file: Optional[str]) -> None:
    if not verbose:
        logger.info(f"MINT integration failed: {err}")
        return

    logger.error(f"MINT integration failed: {err}", exc_info=err)
    if log_file is None:
        return
    try:
        with open(log_file, 'a') as f:
            f.write(f"{time.strftime('%a %b %d %X %Y')}. ERROR: {err}\n")
    except OSError as e:
        logger.debug(f"Could not write to log file {log_file}: {e}")
