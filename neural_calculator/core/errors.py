"""Exception hierarchy for the calculator core."""


class CalculatorError(Exception):
    """Base class for calculator errors."""


class LoadFailure(CalculatorError):
    """Model artifact is absent, unreachable or malformed."""


class ValidationError(CalculatorError):
    """User input is not a finite number."""


class InferenceError(CalculatorError):
    """Forward pass or result extraction failed."""


class ModelNotReadyError(CalculatorError):
    """A prediction was requested while no model is installed."""


class StaleResultError(CalculatorError):
    """A result was produced by a model that has since been replaced."""
