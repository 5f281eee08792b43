"""MINT sPLS-DA model backends."""

from .base import BaseModel, MintResult, TuneResult, MintOutput
from .splsda import MintSPLSDA
from .mixomics import MixOmicsModel

# Model registry
AVAILABLE_MODELS = {
    'splsda': MintSPLSDA,
    'mixomics': MixOmicsModel,
}


def get_model(model_name: str, **kwargs) -> BaseModel:
    """Get a model instance by name.

    Parameters
    ----------
    model_name : str
        Name of the model ('splsda' or 'mixomics')
    **kwargs
        Additional parameters for the model

    Returns
    -------
    model : BaseModel
        Model instance
    """
    if model_name not in AVAILABLE_MODELS:
        raise ValueError(
            f"Unknown model '{model_name}'. Available: {list(AVAILABLE_MODELS.keys())}"
        )

    model_class = AVAILABLE_MODELS[model_name]
    return model_class(**kwargs)


__all__ = [
    'BaseModel',
    'MintResult',
    'TuneResult',
    'MintOutput',
    'MintSPLSDA',
    'MixOmicsModel',
    'get_model',
    'AVAILABLE_MODELS',
]
