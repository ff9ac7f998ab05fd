"""Custom exceptions for LookConf."""

from typing import Any, Optional


class LookConfError(Exception):
    """Base exception for LookConf errors."""

    pass


class InvalidArgumentError(LookConfError, ValueError):
    """Raised when a call receives an argument it cannot work with (e.g. a missing root node)."""

    pass


class LookupNotFoundError(LookConfError, KeyError):
    """Raised internally when a placeholder cannot be resolved.

    The interpolator catches it and leaves the placeholder untouched, so it never reaches callers.
    """

    def __init__(self, token: str, reason: str = "no lookup returned a value"):
        self.token = token
        self.reason = reason
        super().__init__(f"Cannot resolve variable '{token}': {reason}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class ExpressionEvaluationError(LookConfError):
    """Records a failed expression evaluation.

    Instances are collected as diagnostics by the expression lookup instead of being raised.
    """

    def __init__(self, expression: str, cause: BaseException):
        self.expression = expression
        self.cause = cause
        super().__init__(f"Error encountered evaluating '{expression}': {type(cause).__name__}: {cause}")


class RegistrationError(LookConfError):
    """Raised when a variable cannot be registered for expression evaluation."""

    def __init__(self, name: str, value: Any, cause: Optional[BaseException] = None):
        self.name = name
        self.value = value
        self.cause = cause
        message = f"Unable to create {value!r} for variable '{name}'"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class ConversionError(LookConfError, ValueError):
    """Raised when a configuration value cannot be converted to the requested type."""

    def __init__(self, key: str, value: Any, target_type: type):
        self.key = key
        self.value = value
        self.target_type = target_type
        super().__init__(f"Value {value!r} of key '{key}' cannot be converted to {target_type.__name__}")
