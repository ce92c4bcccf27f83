"""
Error taxonomy for StyleMatch
Only catalog failures cross the engine boundary; scoring failures are absorbed
"""


class StyleMatchError(Exception):
    """Base class for engine errors"""


class ModelUnavailable(StyleMatchError):
    """Learned model timed out, failed or is not configured (recoverable)"""


class CatalogUnavailable(StyleMatchError):
    """Catalog store could not be read (fatal for the current request)"""


class InvalidProfileInput(StyleMatchError, ValueError):
    """Profile input could not be used as given (recoverable with defaults)"""


class RecommendationCancelled(StyleMatchError):
    """Request was cancelled before catalog scanning finished"""
