"""MINT sPLS-DA implemented with numpy and scikit-learn.

The model follows the multi-group sparse PLS-DA of mixOmics: every study is
centred and scaled on its own, gene loadings are shared across studies and
made sparse by soft-thresholding, and deflation is carried out within each
study.
"""

import logging
from typing import List, Sequence, Tuple
import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.model_selection import LeaveOneGroupOut
from sklearn.preprocessing import LabelBinarizer

from .base import BaseModel, MintResult, TuneResult, component_names
from ..evaluation.metrics import balanced_error_rate, misclassification_rate

logger = logging.getLogger(__name__)

DISTANCES = ('max.dist', 'centroids.dist', 'mahalanobis.dist')
MEASURES = ('BER', 'overall')


def scale_per_study(M: np.ndarray, study: np.ndarray, scale: bool = True) -> np.ndarray:
    """Center (and optionally scale) the columns of ``M`` within each study.

    Columns with zero variance inside a study are only centred.
    """
    out = np.empty(M.shape, dtype=float)
    for s in np.unique(study):
        idx = study == s
        block = M[idx]
        centred = block - block.mean(axis=0)
        if scale and block.shape[0] > 1:
            sd = block.std(axis=0, ddof=1)
            sd[~np.isfinite(sd) | (sd == 0)] = 1.0
            centred = centred / sd
        out[idx] = centred
    return out


def soft_threshold(vec: np.ndarray, keep: int) -> np.ndarray:
    """Keep the ``keep`` largest entries of ``vec`` in absolute value.

    Kept entries are shrunk towards zero by the largest dropped magnitude,
    so ties at the cut-off can leave fewer than ``keep`` non-zero entries.
    """
    n = vec.shape[0]
    if keep >= n:
        return vec.copy()
    absv = np.abs(vec)
    cutoff = np.sort(absv)[n - keep - 1]
    return np.sign(vec) * np.maximum(absv - cutoff, 0.0)


class MintSPLSDA(BaseModel):
    """MINT sparse PLS discriminant analysis.

    Parameters
    ----------
    scale : bool, default=True
        Scale genes to unit variance within each study
    tol : float, default=1e-06
        Convergence tolerance of the sparse weight iterations
    max_iter : int, default=100
        Maximum number of iterations per component
    n_jobs : int, default=1
        Number of parallel jobs for cross-validation folds during tuning

    Examples
    --------
    >>> model = MintSPLSDA()
    >>> result = model.fit(X, Y, study, ncomp=2, keepX=[20, 20])
    >>> result.select_var(comp=1).head()
    """

    def __init__(
        self,
        scale: bool = True,
        tol: float = 1e-06,
        max_iter: int = 100,
        n_jobs: int = 1,
        **kwargs
    ):
        super().__init__(scale=scale, tol=tol, max_iter=max_iter, n_jobs=n_jobs, **kwargs)
        self.scale = scale
        self.tol = tol
        self.max_iter = max_iter
        self.n_jobs = n_jobs

    # ------------------------------------------------------------------
    # Data helpers
    # ------------------------------------------------------------------

    def _prepare(self, X, Y, study) -> Tuple[np.ndarray, pd.Index, pd.Index, np.ndarray, np.ndarray]:
        if isinstance(X, pd.DataFrame):
            genes = pd.Index(X.columns.astype(str))
            cells = pd.Index(X.index.astype(str))
            data = X.to_numpy(dtype=float)
        else:
            data = np.asarray(X, dtype=float)
            genes = pd.Index([f"X{j + 1}" for j in range(data.shape[1])])
            cells = pd.Index([str(i + 1) for i in range(data.shape[0])])

        Y = np.asarray(Y, dtype=object)
        study = np.asarray(study, dtype=object)
        if len(Y) != data.shape[0] or len(study) != data.shape[0]:
            raise ValueError(
                f"Y ({len(Y)}) and study ({len(study)}) must have one entry per "
                f"row of X ({data.shape[0]})"
            )
        if pd.isna(Y).any() or pd.isna(study).any():
            raise ValueError("Y and study must not contain missing values")
        if not np.isfinite(data).all():
            raise ValueError("X contains missing or infinite values")

        return data, genes, cells, Y.astype(str), study.astype(str)

    @staticmethod
    def _check_keepX(keepX: Sequence[int], ncomp: int, n_genes: int) -> List[int]:
        keepX = [int(k) for k in keepX]
        if len(keepX) != ncomp:
            raise ValueError(f"keepX must have length ncomp ({ncomp}), got {len(keepX)}")
        for k in keepX:
            if k < 1 or k > n_genes:
                raise ValueError(
                    f"keepX values must be between 1 and the number of genes ({n_genes}), got {k}"
                )
        return keepX

    # ------------------------------------------------------------------
    # Core algorithm
    # ------------------------------------------------------------------

    def _sparse_weights(self, M: np.ndarray, keep: int) -> Tuple[np.ndarray, np.ndarray]:
        """Sparse leading singular pair of ``M`` (genes x classes)."""
        U, _, Vt = np.linalg.svd(M, full_matrices=False)
        a = U[:, 0]
        b = Vt[0]

        for _ in range(self.max_iter):
            a_new = soft_threshold(M @ b, keep)
            norm = np.linalg.norm(a_new)
            if norm == 0:
                raise ValueError("All gene weights were thresholded to zero")
            a_new = a_new / norm

            b_new = M.T @ a_new
            norm = np.linalg.norm(b_new)
            if norm == 0:
                raise ValueError("Class weights vanished; X and Y are uncorrelated")
            b_new = b_new / norm

            converged = np.linalg.norm(a_new - a) < self.tol
            a, b = a_new, b_new
            if converged:
                break

        # sign convention: largest loading is positive
        j = np.argmax(np.abs(a))
        if a[j] < 0:
            a, b = -a, -b
        return a, b

    def _fit_arrays(
        self,
        data: np.ndarray,
        Y: np.ndarray,
        study: np.ndarray,
        ncomp: int,
        keepX: Sequence[int],
    ) -> dict:
        lb = LabelBinarizer()
        Yd = lb.fit_transform(Y).astype(float)
        classes = lb.classes_
        if len(classes) < 2:
            raise ValueError("MINT sPLS-DA needs at least two classes")
        if Yd.shape[1] == 1:
            Yd = np.hstack([1.0 - Yd, Yd])

        Xh = scale_per_study(data, study, self.scale)
        Yh = scale_per_study(Yd, study, self.scale)
        studies = np.unique(study)

        n, p = Xh.shape
        A = np.zeros((p, ncomp))
        P = np.zeros((p, ncomp))
        Q = np.zeros((Yh.shape[1], ncomp))
        T = np.zeros((n, ncomp))

        for h in range(ncomp):
            a, _ = self._sparse_weights(Xh.T @ Yh, keepX[h])
            t = Xh @ a
            tt = t @ t
            if tt == 0:
                raise ValueError(f"Component {h + 1} has zero variance")

            A[:, h] = a
            T[:, h] = t
            P[:, h] = Xh.T @ t / tt
            Q[:, h] = Yh.T @ t / tt

            # regression-mode deflation, study by study
            for s in studies:
                idx = study == s
                ts = t[idx]
                tts = ts @ ts
                if tts > 0:
                    Xh[idx] -= np.outer(ts, Xh[idx].T @ ts / tts)
                    Yh[idx] -= np.outer(ts, Yh[idx].T @ ts / tts)

        return {'A': A, 'P': P, 'Q': Q, 'T': T, 'Y': Y, 'classes': classes}

    def _predict(self, fitted: dict, X_test: np.ndarray, h: int, dist: str) -> np.ndarray:
        """Predict classes of already-scaled ``X_test`` using ``h`` components."""
        A = fitted['A'][:, :h]
        P = fitted['P'][:, :h]
        Q = fitted['Q'][:, :h]
        classes = fitted['classes']

        A_star = A @ np.linalg.pinv(P.T @ A)
        T_test = X_test @ A_star

        if dist == 'max.dist':
            Y_hat = T_test @ Q.T
            return classes[np.argmax(Y_hat, axis=1)]

        T_train = fitted['T'][:, :h]
        centroids = np.vstack([T_train[fitted['Y'] == c].mean(axis=0) for c in classes])
        diff = T_test[:, None, :] - centroids[None, :, :]

        if dist == 'centroids.dist':
            d = np.sum(diff ** 2, axis=2)
        else:
            cov_inv = np.linalg.pinv(np.atleast_2d(np.cov(T_train, rowvar=False)))
            d = np.einsum('nkh,hg,nkg->nk', diff, cov_inv, diff)
        return classes[np.argmin(d, axis=1)]

    def _fold_predict(self, data, Y, study, train, test, keepX, dist) -> np.ndarray:
        fitted = self._fit_arrays(data[train], Y[train], study[train], len(keepX), keepX)
        X_test = scale_per_study(data[test], study[test], self.scale)
        return self._predict(fitted, X_test, len(keepX), dist)

    # ------------------------------------------------------------------
    # fit / tune
    # ------------------------------------------------------------------

    def fit(self, X, Y, study, ncomp, keepX) -> MintResult:
        """Fit MINT sPLS-DA on a cells x genes matrix."""
        data, genes, cells, Y, study = self._prepare(X, Y, study)
        keepX = self._check_keepX(keepX, ncomp, data.shape[1])

        logger.info(
            f"Fitting MINT sPLS-DA: {data.shape[0]} cells x {data.shape[1]} genes, "
            f"{len(np.unique(study))} studies, ncomp={ncomp}, keepX={keepX}"
        )
        fitted = self._fit_arrays(data, Y, study, ncomp, keepX)

        comps = component_names(ncomp)
        variates = pd.DataFrame(fitted['T'], index=cells, columns=comps)
        variates_partial = {
            s: variates.iloc[np.flatnonzero(study == s)]
            for s in np.unique(study)
        }
        loadings = pd.DataFrame(fitted['A'], index=genes, columns=comps)

        return MintResult(
            variates=variates,
            variates_partial=variates_partial,
            loadings=loadings,
            keepX=keepX,
            extra={'classes': list(fitted['classes'])},
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
        """Tune keepX component by component with leave-one-study-out CV.

        For component ``h`` every value of ``test_keepX`` is combined with
        the values already chosen for components ``1..h-1``; held-out
        predictions of all folds are pooled and scored with ``measure``.
        The value with the lowest error is kept (smallest on ties).
        """
        if dist not in DISTANCES:
            raise ValueError(f"dist must be one of {DISTANCES}, got '{dist}'")
        if measure not in MEASURES:
            raise ValueError(f"measure must be one of {MEASURES}, got '{measure}'")

        data, _, _, Y, study = self._prepare(X, Y, study)
        grid = sorted({int(g) for g in test_keepX})
        if not grid:
            raise ValueError("test_keepX must not be empty")
        if grid[0] < 1 or grid[-1] > data.shape[1]:
            raise ValueError(
                f"test_keepX values must be between 1 and the number of genes ({data.shape[1]})"
            )
        if len(np.unique(study)) < 2:
            raise ValueError("Leave-one-study-out tuning needs at least two studies")

        folds = list(LeaveOneGroupOut().split(data, Y, groups=study))
        comps = component_names(ncomp)
        error_rate = pd.DataFrame(
            np.nan, index=pd.Index(grid, name='keepX'), columns=comps, dtype=float
        )
        error_fn = balanced_error_rate if measure == 'BER' else misclassification_rate

        chosen: List[int] = []
        for h in range(ncomp):
            for g in grid:
                keepX = chosen + [g]
                fold_preds = Parallel(n_jobs=self.n_jobs)(
                    delayed(self._fold_predict)(data, Y, study, train, test, keepX, dist)
                    for train, test in folds
                )
                y_pred = np.empty(len(Y), dtype=object)
                for (_, test), pred in zip(folds, fold_preds):
                    y_pred[test] = pred
                error_rate.loc[g, comps[h]] = error_fn(Y, y_pred.astype(str))

            best = int(error_rate[comps[h]].idxmin())
            chosen.append(best)
            logger.info(
                f"Component {h + 1}: keepX={best} "
                f"({measure}={error_rate.loc[best, comps[h]]:.4f})"
            )

        return TuneResult(choice_keepX=chosen, error_rate=error_rate, measure=measure, dist=dist)
