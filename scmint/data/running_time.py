"""Running-time log kept in ``adata.uns['running_time']``."""

import logging
import pandas as pd
from anndata import AnnData

logger = logging.getLogger(__name__)

RUNNING_TIME_KEY = 'running_time'
RUNNING_TIME_COLUMNS = ['method', 'method_type', 'time']


def get_running_time(adata: AnnData) -> pd.DataFrame:
    """Return the running-time log as a DataFrame (empty if absent).

    A log read back from ``.h5ad`` may come as a dict of columns; it is
    converted to a DataFrame.
    """
    log = adata.uns.get(RUNNING_TIME_KEY)
    if log is None:
        return pd.DataFrame(columns=RUNNING_TIME_COLUMNS)
    if not isinstance(log, pd.DataFrame):
        log = pd.DataFrame(dict(log))
    return log


def append_running_time(
    adata: AnnData,
    method: str,
    method_type: str,
    elapsed: float,
) -> pd.DataFrame:
    """Append one ``(method, method_type, time)`` row to the running-time log.

    The log is created when absent; existing rows are never modified.

    Parameters
    ----------
    adata : AnnData
        Data object owning the log
    method : str
        Method name (e.g. 'mixOmics_mint')
    method_type : str
        Method category (e.g. 'visualisation')
    elapsed : float
        Elapsed time in seconds

    Returns
    -------
    log : pd.DataFrame
        The updated log, also stored in ``adata.uns['running_time']``
    """
    row = pd.DataFrame(
        {'method': [method], 'method_type': [method_type], 'time': [float(elapsed)]}
    )
    if RUNNING_TIME_KEY in adata.uns:
        log = pd.concat([get_running_time(adata), row], ignore_index=True)
    else:
        log = row

    adata.uns[RUNNING_TIME_KEY] = log
    logger.debug(f"Recorded running time for {method}: {elapsed:.3f}s")
    return log
