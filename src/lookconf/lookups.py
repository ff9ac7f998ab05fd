"""Lookup capability and built-in lookup implementations.

A lookup maps a variable name to a string, or to None when it does not know the name. Lookups
never interpolate their own results; the interpolator takes care of nested placeholders.
"""

from __future__ import annotations

import getpass
import os
import platform
import sys
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Protocol, runtime_checkable

from .utils import import_object

if TYPE_CHECKING:
    from .config import HierarchicalConfiguration


@runtime_checkable
class Lookup(Protocol):
    """Resolver for the variable names of placeholders."""

    def resolve(self, name: str) -> Optional[str]:
        """Return the value for ``name`` or None if it is unknown."""
        ...


class MapLookup:
    """Lookup backed by a mapping; values are converted with ``str()``."""

    def __init__(self, mapping: Optional[Mapping[str, Any]] = None):
        self.mapping = mapping if mapping is not None else {}

    def resolve(self, name: str) -> Optional[str]:
        if name not in self.mapping:
            return None
        value = self.mapping[name]
        return None if value is None else str(value)


class FunctionLookup:
    """Adapt a plain ``callable(name) -> Optional[str]`` to the lookup capability."""

    def __init__(self, func: Callable[[str], Optional[str]]):
        self.func = func

    def resolve(self, name: str) -> Optional[str]:
        value = self.func(name)
        return None if value is None else str(value)


class EnvironmentLookup(MapLookup):
    """Lookup for environment variables (registered under ``env``).

    The environment is copied at construction time, so later changes to ``os.environ`` are not
    visible through an existing instance.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        super().__init__(dict(os.environ if environ is None else environ))


class SystemLookup(MapLookup):
    """Lookup for interpreter and platform properties (registered under ``sys``)."""

    def __init__(self):
        super().__init__(self._collect_properties())

    @staticmethod
    def _collect_properties() -> Dict[str, str]:
        """Snapshot of the properties exposed by this lookup.

        Returns:
            Property name -> value  # (e.g. "python.version" -> "3.12.1")
        """
        try:
            user_name = getpass.getuser()
        except (KeyError, OSError):
            # No login name available (e.g. containers without passwd entry)
            user_name = ""

        return {
            "python.version": platform.python_version(),
            "python.implementation": platform.python_implementation(),
            "python.executable": sys.executable,
            "os.name": platform.system(),
            "os.version": platform.release(),
            "os.arch": platform.machine(),
            "user.dir": os.getcwd(),
            "user.home": os.path.expanduser("~"),
            "user.name": user_name,
            "file.separator": os.sep,
            "path.separator": os.pathsep,
            "line.separator": os.linesep,
            "file.encoding": sys.getfilesystemencoding(),
        }


class ConstantLookup:
    """Lookup for constants given by their fully qualified name (registered under ``const``).

    ``const:math.pi`` imports ``math`` and returns ``str(math.pi)``. Resolved values are cached.
    """

    def __init__(self):
        self._cache: Dict[str, str] = {}

    def resolve(self, name: str) -> Optional[str]:
        if name in self._cache:
            return self._cache[name]

        try:
            value = import_object(name)
        except ImportError:
            return None

        self._cache[name] = str(value)
        return self._cache[name]


class ConfigurationLookup:
    """Lookup resolving variable names as keys of a configuration.

    This is the default lookup of every configuration: ``${server.host}`` refers to the raw value
    of the key ``server.host``. For list values the first element is used.
    """

    def __init__(self, configuration: HierarchicalConfiguration):
        self.configuration = configuration

    def resolve(self, name: str) -> Optional[str]:
        value = self.configuration.get_property(name)
        if isinstance(value, list):
            value = value[0] if value else None
        return None if value is None else str(value)
