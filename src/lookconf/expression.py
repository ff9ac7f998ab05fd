"""Expression lookup evaluating placeholder tokens against a variable context."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from simpleeval import EvalWithCompoundTypes

from .exceptions import ExpressionEvaluationError, InvalidArgumentError, RegistrationError
from .logging import get_logger
from .utils import import_object

if TYPE_CHECKING:
    from .config import HierarchicalConfiguration

logger = get_logger(__name__)

CLASS_MARKER = "Class:"
DEFAULT_EXPRESSION_PREFIX = "$["
DEFAULT_EXPRESSION_SUFFIX = "]"
MAX_DIAGNOSTICS = 100


class Variable:
    """A named object made available to expressions.

    String values starting with the class marker are converted when assigned:

    - ``Class:collections.OrderedDict`` becomes the class itself,
    - ``Class:collections.OrderedDict()`` becomes a new instance of the class.

    All other values are stored as they are.
    """

    def __init__(self, name: str, value: Any = None):
        """Initialize variable.

        Args:
            name: Name used in expressions
            value: Object, class marker string or plain value

        Raises:
            RegistrationError: If a class marker cannot be imported or instantiated
        """
        if not name:
            raise InvalidArgumentError("Variable name must not be empty!")
        self.name = name
        self.value = value

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, value: Any) -> None:
        if not isinstance(value, str) or not value.lower().startswith(CLASS_MARKER.lower()):
            self._value = value
            return

        # Class marker: import eagerly so that broken registrations fail here, not in expressions
        path = value[len(CLASS_MARKER) :].strip()
        instantiate = path.endswith("()")
        if instantiate:
            path = path[:-2].strip()

        try:
            obj = import_object(path)
            self._value = obj() if instantiate else obj
        except Exception as e:
            raise RegistrationError(self.name, value, e) from e

    def __repr__(self) -> str:
        return f"Variable({self.name!r}, {self._value!r})"


VariableEntry = Union[Variable, Tuple[str, Any]]


class VariableContext:
    """Named objects accessible within expressions.

    Each expression lookup owns its context; contexts are not shared implicitly.
    """

    def __init__(self, variables: Optional[Union[Iterable[VariableEntry], Mapping[str, Any]]] = None):
        self._vars: Dict[str, Any] = {}
        if variables is not None:
            self.register_all(variables)

    def register(self, name: str, value: Any) -> Any:
        """Register a variable, converting class markers.

        Returns:
            The stored value  # (class or instance for class markers)

        Raises:
            RegistrationError: If a class marker cannot be imported or instantiated
        """
        variable = Variable(name, value)
        self._vars[variable.name] = variable.value
        return variable.value

    def register_all(self, variables: Union[Iterable[VariableEntry], Mapping[str, Any]]) -> None:
        """Register several variables.

        Args:
            variables: Mapping, Variable objects or (name, value) pairs
        """
        items = variables.items() if isinstance(variables, Mapping) else variables
        for item in items:
            if isinstance(item, Variable):
                self._vars[item.name] = item.value
            else:
                name, value = item
                self.register(name, value)

    def unregister(self, name: str) -> bool:
        if name not in self._vars:
            return False
        del self._vars[name]
        return True

    def get(self, name: str, default: Any = None) -> Any:
        return self._vars.get(name, default)

    def names(self) -> List[str]:
        return list(self._vars)

    def as_dict(self) -> Dict[str, Any]:
        """Copy of the registered variables."""
        return dict(self._vars)

    def __contains__(self, name: str) -> bool:
        return name in self._vars

    def __len__(self) -> int:
        return len(self._vars)


class ExpressionLookup:
    """Lookup evaluating its variable name as an expression.

    Before evaluation, placeholders written with the expression markers (``$[...]`` by default)
    are substituted through the interpolator of the attached configuration. The resulting text is
    evaluated with simpleeval against the variable context, e.g. ``expr:String.upper('$[name]')``.

    A failing evaluation never breaks interpolation: it is recorded in ``diagnostics`` and the
    substituted but unevaluated text is returned instead.
    """

    # Safe functions whitelist - registered callables are added per evaluation
    SAFE_FUNCTIONS = {
        "len": len,
        "abs": abs,
        "min": min,
        "max": max,
        "lower": lambda s: s.lower() if isinstance(s, str) else s,
        "upper": lambda s: s.upper() if isinstance(s, str) else s,
        "int": int,
        "float": float,
        "str": str,
        "bool": bool,
    }

    def __init__(
        self,
        variables: Optional[Union[VariableContext, Iterable[VariableEntry], Mapping[str, Any]]] = None,
        configuration: Optional[HierarchicalConfiguration] = None,
        prefix: str = DEFAULT_EXPRESSION_PREFIX,
        suffix: str = DEFAULT_EXPRESSION_SUFFIX,
    ):
        """Initialize expression lookup.

        Args:
            variables: Variable context or variables to register in a new one
            configuration: Configuration whose interpolator expands sub-expressions
            prefix: Marker opening a sub-expression placeholder
            suffix: Marker closing a sub-expression placeholder
        """
        if isinstance(variables, VariableContext):
            self.variables = variables
        else:
            self.variables = VariableContext(variables)
        self.configuration = configuration
        self.set_markers(prefix, suffix)
        self._diagnostics: deque[ExpressionEvaluationError] = deque(maxlen=MAX_DIAGNOSTICS)

    def set_markers(self, prefix: str, suffix: str) -> None:
        """Set the markers of sub-expression placeholders.

        Raises:
            InvalidArgumentError: If a marker is empty or both markers are equal
        """
        if not prefix or not suffix:
            raise InvalidArgumentError("Expression prefix and suffix must not be empty!")
        if prefix == suffix:
            raise InvalidArgumentError(f"Expression prefix and suffix must differ, both are '{prefix}'")
        self.prefix = prefix
        self.suffix = suffix

    @property
    def diagnostics(self) -> List[ExpressionEvaluationError]:
        """Recent evaluation failures, oldest first."""
        return list(self._diagnostics)

    def clear_diagnostics(self) -> None:
        self._diagnostics.clear()

    def resolve(self, name: str) -> Optional[str]:
        """Evaluate an expression.

        Args:
            name: Raw expression  # (may contain sub-expression placeholders)

        Returns:
            String result of the evaluation, the substituted text if evaluation fails, or None if
            the expression evaluates to None
        """
        expression = self._substitute(name)

        try:
            result = self._evaluate(expression)
        except Exception as e:  # noqa: BLE001
            error = ExpressionEvaluationError(expression, e)
            self._diagnostics.append(error)
            logger.debug("expression_evaluation_failed", expression=expression, error=str(error))
            return expression

        return None if result is None else str(result)

    def _substitute(self, expression: str) -> str:
        """Expand sub-expression placeholders through the configuration's lookups."""
        if self.configuration is None:
            return expression
        interpolator = self.configuration.interpolator.with_markers(self.prefix, self.suffix)
        return interpolator.substitute(expression)

    def _evaluate(self, expression: str) -> Any:
        """Evaluate a fully substituted expression against the variable context."""
        names = self.variables.as_dict()
        functions = dict(self.SAFE_FUNCTIONS)
        functions.update({name: value for name, value in names.items() if callable(value)})

        evaluator = EvalWithCompoundTypes(names=names, functions=functions)
        return evaluator.eval(expression)
