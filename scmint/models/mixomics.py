"""MINT sPLS-DA through the R mixOmics package (via rpy2)."""

import logging
from typing import Sequence
import numpy as np
import pandas as pd

from .base import BaseModel, MintResult, TuneResult, component_names

logger = logging.getLogger(__name__)


class MixOmicsModel(BaseModel):
    """MINT sPLS-DA computed by ``mixOmics::mint.splsda`` in R.

    Requires R with the Bioconductor package mixOmics and the Python
    package rpy2 (``pip install -e '.[r]'``).

    Examples
    --------
    >>> model = MixOmicsModel()
    >>> result = model.fit(X, Y, study, ncomp=2, keepX=[20, 20])
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._mixomics = None

    def _load(self):
        """Import rpy2 and mixOmics on first use."""
        if self._mixomics is not None:
            return self._mixomics

        try:
            import rpy2.robjects  # noqa: F401
            from rpy2.robjects.packages import importr
        except ImportError:
            raise ImportError(
                "rpy2 is required for the mixOmics backend. Install with: "
                "pip install -e '.[r]'"
            )

        try:
            self._mixomics = importr("mixOmics")
        except Exception:
            raise ImportError(
                "R package mixOmics not found. Install in R with: "
                "BiocManager::install('mixOmics')"
            )
        return self._mixomics

    # ------------------------------------------------------------------
    # Conversion helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_r(X: pd.DataFrame, Y: Sequence, study: Sequence):
        import rpy2.robjects as ro

        data = X.to_numpy(dtype=float)
        r_X = ro.r.matrix(
            ro.FloatVector(data.ravel(order='F')),
            nrow=data.shape[0],
            ncol=data.shape[1],
        )
        r_X.rownames = ro.StrVector([str(c) for c in X.index])
        r_X.colnames = ro.StrVector([str(g) for g in X.columns])

        r_Y = ro.FactorVector(ro.StrVector([str(y) for y in Y]))
        r_study = ro.FactorVector(ro.StrVector([str(s) for s in study]))
        return r_X, r_Y, r_study

    @staticmethod
    def _to_frame(r_matrix, columns=None) -> pd.DataFrame:
        import rpy2.robjects as ro
        from rpy2.robjects import numpy2ri
        from rpy2.robjects.conversion import localconverter

        with localconverter(ro.default_converter + numpy2ri.converter):
            values = np.asarray(ro.conversion.rpy2py(r_matrix), dtype=float)
        values = np.atleast_2d(values)
        index = [str(r) for r in ro.r['rownames'](r_matrix)]
        if columns is None:
            columns = component_names(values.shape[1])
        return pd.DataFrame(values, index=index, columns=columns)

    # ------------------------------------------------------------------
    # fit / tune
    # ------------------------------------------------------------------

    def fit(self, X, Y, study, ncomp, keepX) -> MintResult:
        """Run ``mint.splsda`` and convert its output to a MintResult."""
        mixomics = self._load()
        import rpy2.robjects as ro

        r_X, r_Y, r_study = self._to_r(X, Y, study)

        logger.info(f"Running mixOmics::mint.splsda (ncomp={ncomp}, keepX={list(keepX)})")
        res = mixomics.mint_splsda(
            X=r_X,
            Y=r_Y,
            study=r_study,
            ncomp=int(ncomp),
            keepX=ro.IntVector([int(k) for k in keepX]),
        )

        comps = component_names(ncomp)
        variates = self._to_frame(res.rx2('variates').rx2('X'), comps)
        partial_list = res.rx2('variates.partial').rx2('X')
        variates_partial = {
            str(name): self._to_frame(mat, comps)
            for name, mat in zip(partial_list.names, partial_list)
        }
        loadings = self._to_frame(res.rx2('loadings').rx2('X'), comps)

        return MintResult(
            variates=variates,
            variates_partial=variates_partial,
            loadings=loadings,
            keepX=[int(k) for k in keepX],
            extra={'r_object': res},
        )

    def tune(
        self,
        X,
        Y,
        study,
        ncomp,
        test_keepX,
        dist='mahalanobis.dist',
        measure='BER',
    ) -> TuneResult:
        """Run ``tune.mint.splsda`` and return the chosen keepX."""
        mixomics = self._load()
        import rpy2.robjects as ro

        r_X, r_Y, r_study = self._to_r(X, Y, study)

        logger.info(f"Running mixOmics::tune.mint.splsda over keepX={list(test_keepX)}")
        res = mixomics.tune_mint_splsda(
            X=r_X,
            Y=r_Y,
            study=r_study,
            ncomp=int(ncomp),
            test_keepX=ro.IntVector([int(k) for k in test_keepX]),
            dist=dist,
            measure=measure,
            progressBar=False,
        )

        choice = [int(k) for k in res.rx2('choice.keepX')]
        error_rate = self._to_frame(res.rx2('error.rate'))
        error_rate.index = pd.Index([int(float(i)) for i in error_rate.index], name='keepX')

        return TuneResult(choice_keepX=choice, error_rate=error_rate, measure=measure, dist=dist)
