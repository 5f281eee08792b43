"""Visualization utilities for MINT integration results."""

import logging
from typing import Optional, Tuple
import numpy as np
import pandas as pd
from anndata import AnnData
import matplotlib.pyplot as plt
import seaborn as sns

logger = logging.getLogger(__name__)


def plot_components(
    adata: AnnData,
    color: str,
    comps: Tuple[int, int] = (1, 2),
    batch: Optional[str] = None,
    save: Optional[str] = None,
    figsize: tuple = (6, 5),
    ax: Optional[plt.Axes] = None,
) -> plt.Figure:
    """Scatter plot of two MINT components.

    Parameters
    ----------
    adata : AnnData
        Data returned by ``integrate``
    color : str
        Column in ``.obs`` to color by
    comps : tuple of int, default=(1, 2)
        Components to plot (1-based)
    batch : str, optional
        Plot the partial components of this batch instead of the global ones
    save : str, optional
        Path to save figure
    figsize : tuple, default=(6, 5)
        Figure size
    ax : matplotlib Axes, optional
        Axes to draw on

    Returns
    -------
    fig : matplotlib.figure.Figure
        Figure object

    Examples
    --------
    >>> plot_components(adata, color='mix')
    >>> plot_components(adata, color='mix', batch='10x', save='10x.pdf')
    """
    key = 'mint_comps_global' if batch is None else f'mint_comps_{batch}'
    if key not in adata.obsm:
        raise ValueError(f"Embedding '{key}' not found in adata.obsm. Run integrate() first.")

    emb = np.asarray(adata.obsm[key], dtype=float)
    x, y = comps[0] - 1, comps[1] - 1
    df = pd.DataFrame({
        f'comp{comps[0]}': emb[:, x],
        f'comp{comps[1]}': emb[:, y],
        color: adata.obs[color].astype(str).to_numpy(),
    }).dropna()

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    sns.scatterplot(
        data=df,
        x=f'comp{comps[0]}',
        y=f'comp{comps[1]}',
        hue=color,
        s=12,
        linewidth=0,
        ax=ax,
    )
    ax.set_title('MINT global components' if batch is None else f'MINT components: {batch}')
    ax.legend(bbox_to_anchor=(1.02, 1), loc='upper left', frameon=False)

    plt.tight_layout()

    if save:
        fig.savefig(save, dpi=300, bbox_inches='tight')
        logger.info(f"Saved component plot to {save}")

    return fig


def plot_tuning(
    tune_result,
    save: Optional[str] = None,
    figsize: tuple = (6, 4),
) -> plt.Figure:
    """Plot the cross-validated error rate against keepX for each component.

    Parameters
    ----------
    tune_result : TuneResult
        Result of ``model.tune`` (or ``MintOutput.tune``)
    save : str, optional
        Path to save figure
    figsize : tuple, default=(6, 4)
        Figure size

    Returns
    -------
    fig : matplotlib.figure.Figure
        Figure object
    """
    error_rate = tune_result.error_rate
    fig, ax = plt.subplots(figsize=figsize)

    for comp in error_rate.columns:
        ax.plot(error_rate.index, error_rate[comp], marker='o', label=comp)

    for h, keep in enumerate(tune_result.choice_keepX):
        comp = error_rate.columns[h]
        ax.scatter([keep], [error_rate.loc[keep, comp]], s=120, facecolors='none', edgecolors='black')

    ax.set_xlabel('Number of selected genes (keepX)')
    ax.set_ylabel(tune_result.measure)
    ax.set_title(f'Tuning ({tune_result.dist})')
    ax.legend(frameon=False)
    ax.grid(alpha=0.3)

    plt.tight_layout()

    if save:
        fig.savefig(save, dpi=300, bbox_inches='tight')
        logger.info(f"Saved tuning plot to {save}")

    return fig


def plot_marker_overlap(
    overlap: pd.DataFrame,
    save: Optional[str] = None,
    figsize: tuple = (8, 4),
) -> plt.Figure:
    """Bar plot of Venn region sizes from ``marker_overlap``.

    Parameters
    ----------
    overlap : pd.DataFrame
        Output of ``scmint.evaluation.marker_overlap``
    save : str, optional
        Path to save figure
    figsize : tuple, default=(8, 4)
        Figure size

    Returns
    -------
    fig : matplotlib.figure.Figure
        Figure object
    """
    set_cols = [c for c in overlap.columns if c not in ('n_genes', 'genes')]
    labels = [
        ' & '.join(c for c in set_cols if row[c])
        for _, row in overlap.iterrows()
    ]

    fig, ax = plt.subplots(figsize=figsize)
    sns.barplot(x=labels, y=overlap['n_genes'].to_numpy(), color='steelblue', ax=ax)

    ax.set_xlabel('Region')
    ax.set_ylabel('Genes')
    ax.set_title('Marker overlap')
    ax.tick_params(axis='x', rotation=45)
    ax.grid(axis='y', alpha=0.3)

    plt.tight_layout()

    if save:
        fig.savefig(save, dpi=300, bbox_inches='tight')
        logger.info(f"Saved marker overlap plot to {save}")

    return fig
