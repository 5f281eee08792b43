"""scmint: MINT sPLS-DA integration for single cell data

Integrates batches (protocols, studies) of single cell RNA-seq data whose
cell classes are known, selects discriminative marker genes and stores
global and per-batch components in the AnnData object.
"""

from .integration import integrate
from .config import MintConfig, run_from_config
from .models import AVAILABLE_MODELS, MintOutput, MintResult, TuneResult

__version__ = "0.1.0"
__all__ = [
    "integrate",
    "MintConfig",
    "run_from_config",
    "AVAILABLE_MODELS",
    "MintOutput",
    "MintResult",
    "TuneResult",
]
