"""
Custom exceptions for PyACD.
Provides domain-specific error handling with informative messages.
"""
import math
from contextlib import contextmanager


class ACDError(Exception):
    """Base exception for all PyACD errors."""
    pass


class ConfigurationError(ACDError):
    """Raised when stand configuration or configuration files are invalid."""
    pass


class InvalidParameterError(ConfigurationError):
    """Raised when a parameter value is invalid."""
    def __init__(self, param_name: str, value: any, reason: str = ""):
        self.param_name = param_name
        self.value = value
        self.reason = reason
        message = f"Invalid value for parameter '{param_name}': {value}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class SpeciesLookupError(ACDError):
    """Raised when a species code is not found directly or via the crosswalk."""
    def __init__(self, species_code, detail: str = ""):
        self.species_code = species_code
        message = (f"Species '{species_code}' not found in the species table "
                   f"or the species crosswalk")
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class ComputationError(ACDError):
    """Raised when an equation hits a math domain failure."""
    def __init__(self, equation: str, reason: str):
        self.equation = equation
        self.reason = reason
        super().__init__(f"Computation in '{equation}' failed: {reason}")


class InternalConsistencyError(ACDError):
    """Raised when an internal invariant of the aggregation traversal is violated."""
    pass


class DataError(ACDError):
    """Raised when there are data-related issues."""
    pass


class FileNotFoundError(DataError):
    """Raised when a required file is not found."""
    def __init__(self, file_path: str, file_type: str = "file"):
        self.file_path = file_path
        self.file_type = file_type
        super().__init__(f"Required {file_type} not found: {file_path}")


class InvalidDataError(DataError):
    """Raised when data is malformed or invalid."""
    def __init__(self, data_description: str, reason: str):
        self.data_description = data_description
        self.reason = reason
        super().__init__(f"Invalid {data_description}: {reason}")


@contextmanager
def computation_guard(equation: str, **context):
    """Translate math domain failures inside an equation into ComputationError.

    Args:
        equation: Name of the equation being evaluated
        **context: Input values reported in the error message

    Raises:
        ComputationError: If the wrapped block raises ValueError,
            OverflowError or ZeroDivisionError
    """
    try:
        yield
    except (ValueError, OverflowError, ZeroDivisionError) as e:
        details = ", ".join(f"{k}={v}" for k, v in context.items())
        reason = f"{e}" if not details else f"{e} [{details}]"
        raise ComputationError(equation, reason) from e


def check_finite(value: float, equation: str) -> float:
    """Raise ComputationError when an equation produced NaN or infinity."""
    if not math.isfinite(value):
        raise ComputationError(equation, f"non-finite result {value}")
    return value


# Validation utilities
def validate_positive(value: float, param_name: str) -> float:
    """Validate that a value is positive.

    Args:
        value: Value to validate
        param_name: Parameter name for error message

    Returns:
        The validated value

    Raises:
        InvalidParameterError: If value is not positive
    """
    if not value > 0:
        raise InvalidParameterError(param_name, value, "must be positive")
    return value


def validate_proportion(value: float, param_name: str) -> float:
    """Validate that a value is a valid proportion (0-1).

    Args:
        value: Value to validate
        param_name: Parameter name for error message

    Returns:
        The validated value

    Raises:
        InvalidParameterError: If value is not in [0, 1]
    """
    if not 0 <= value <= 1:
        raise InvalidParameterError(param_name, value, "must be between 0 and 1")
    return value
