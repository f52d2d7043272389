"""Error types raised by the estimators."""


class FilterError(Exception):
    """Base class for all estimator errors."""
    pass


class ConfigurationError(FilterError, ValueError):
    """Raised when a filter is constructed or configured with invalid arguments."""
    pass


class DimensionMismatchError(FilterError, ValueError):
    """Raised when a state or measurement vector has the wrong size at call time."""
    pass


class NumericalInstabilityError(FilterError):
    """Raised when a covariance loses positive-definiteness."""
    pass


class DegenerateWeightsError(FilterError):
    """Raised when particle weights collapse (zero total likelihood)."""
    pass
