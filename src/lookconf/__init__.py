"""LookConf - Hierarchical Configuration with Lookup-based Interpolation.

An in-memory configuration tree whose values may contain placeholders such as ``${env:HOME}``
or ``${server.host}``. Placeholders are resolved at read time through pluggable lookups,
including an expression lookup evaluating ``${expr:...}`` against registered variables.
"""
# ruff: noqa: F401

from .config import HierarchicalConfiguration
from .exceptions import (
    ConversionError,
    ExpressionEvaluationError,
    InvalidArgumentError,
    LookConfError,
    LookupNotFoundError,
    RegistrationError,
)
from .expression import ExpressionLookup, Variable, VariableContext
from .interpolation import Interpolator
from .lookups import (
    ConfigurationLookup,
    ConstantLookup,
    EnvironmentLookup,
    FunctionLookup,
    Lookup,
    MapLookup,
    SystemLookup,
)
from .nodes import ConfigurationNode, InMemoryNodeSource
from .registry import LookupRegistry, default_registry

__version__ = "0.1.0"
