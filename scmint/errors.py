"""Exceptions raised while validating and running MINT integration."""


class MintError(Exception):
    """Base class for all scmint errors."""


class InvalidArgument(MintError, ValueError):
    """An option passed to ``integrate`` is not recognised (e.g. ``output``)."""


class InvalidInput(MintError, ValueError):
    """The dataset is not an AnnData object with a usable expression matrix."""


class UnresolvableAnnotation(MintError, ValueError):
    """A batch, class or gene annotation key does not exist."""


class InvalidFeatureSubset(MintError, ValueError):
    """The requested gene subset is unknown, empty or not boolean."""


class InsufficientGroups(MintError, ValueError):
    """Fewer than two batches or fewer than two classes."""


class LengthMismatch(MintError, ValueError):
    """``len(keepX)`` differs from ``ncomp``."""


class DuplicateIdentifier(MintError, ValueError):
    """Cell or gene names are not unique."""


class ExternalModelFailure(MintError):
    """The model backend raised while tuning or fitting.

    The original exception is kept in ``__cause__``.
    """
