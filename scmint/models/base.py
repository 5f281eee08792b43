"""Base model interface for MINT sPLS-DA backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
import numpy as np
import pandas as pd


def component_names(ncomp: int) -> List[str]:
    """Column names used for component matrices (``comp1``, ``comp2``, ...)."""
    return [f"comp{i + 1}" for i in range(ncomp)]


@dataclass
class MintResult:
    """Fitted MINT sPLS-DA model.

    Attributes
    ----------
    variates : pd.DataFrame
        Global component scores (cells x components)
    variates_partial : dict of str -> pd.DataFrame
        Component scores of each study, restricted to that study's cells
    loadings : pd.DataFrame
        Gene loadings (genes x components); zero for unselected genes
    keepX : list of int
        Number of genes selected on each component
    """

    variates: pd.DataFrame
    variates_partial: Dict[str, pd.DataFrame]
    loadings: pd.DataFrame
    keepX: List[int]
    extra: dict = field(default_factory=dict)

    @property
    def ncomp(self) -> int:
        return self.variates.shape[1]

    def select_var(self, comp: int = 1) -> pd.DataFrame:
        """Return the genes selected on component ``comp`` (1-based).

        Genes are ordered by decreasing absolute loading, with the loading
        in the ``value`` column.
        """
        if comp < 1 or comp > self.loadings.shape[1]:
            raise ValueError(
                f"comp must be between 1 and {self.loadings.shape[1]}, got {comp}"
            )
        values = self.loadings.iloc[:, comp - 1]
        values = values[values != 0]
        order = np.argsort(-np.abs(values.to_numpy()), kind="stable")
        return pd.DataFrame({"value": values.iloc[order]})

    def markers(self) -> List[str]:
        """Union of selected genes over all components, first seen first."""
        ordered = []
        seen = set()
        for comp in range(1, self.ncomp + 1):
            for gene in self.select_var(comp).index:
                if gene not in seen:
                    seen.add(gene)
                    ordered.append(gene)
        return ordered


@dataclass
class TuneResult:
    """Outcome of tuning the number of genes per component."""

    choice_keepX: List[int]
    error_rate: pd.DataFrame
    measure: str = "BER"
    dist: str = "mahalanobis.dist"


@dataclass
class MintOutput:
    """Model objects returned alongside the AnnData when ``output='both'``."""

    splsda: MintResult
    tune: Optional[TuneResult] = None


class BaseModel(ABC):
    """Abstract base class for MINT sPLS-DA backends.

    Backends receive plain matrices: ``X`` is a cells x genes DataFrame,
    ``Y`` the class label of every cell and ``study`` its batch.
    """

    def __init__(self, **kwargs):
        """Initialize the model with optional parameters."""
        self.params = kwargs

    @abstractmethod
    def fit(
        self,
        X: pd.DataFrame,
        Y: Sequence,
        study: Sequence,
        ncomp: int,
        keepX: Sequence[int],
    ) -> MintResult:
        """Fit MINT sPLS-DA.

        Parameters
        ----------
        X : pd.DataFrame
            Expression matrix (cells x genes)
        Y : array-like
            Class label per cell
        study : array-like
            Study/batch label per cell
        ncomp : int
            Number of components
        keepX : sequence of int
            Number of genes to select on each component

        Returns
        -------
        result : MintResult
        """

    @abstractmethod
    def tune(
        self,
        X: pd.DataFrame,
        Y: Sequence,
        study: Sequence,
        ncomp: int,
        test_keepX: Sequence[int],
        dist: str = "mahalanobis.dist",
        measure: str = "BER",
    ) -> TuneResult:
        """Choose ``keepX`` for each component from ``test_keepX``.

        Returns
        -------
        result : TuneResult
            ``choice_keepX`` has length ``ncomp``
        """

    def __repr__(self) -> str:
        """String representation."""
        params_str = ", ".join(f"{k}={v}" for k, v in self.params.items())
        return f"{self.__class__.__name__}({params_str})"
