"""Lookup registry dispatching placeholder tokens to lookups by prefix."""

from __future__ import annotations

from typing import Dict, List, Optional

from .exceptions import InvalidArgumentError
from .logging import get_logger
from .lookups import ConstantLookup, EnvironmentLookup, Lookup, SystemLookup

logger = get_logger(__name__)

DEFAULT_PREFIX_SEPARATOR = ":"


class LookupRegistry:
    """Registry of lookups keyed by prefix.

    A token such as ``env:HOME`` is split at the first prefix separator. The part before it selects
    the lookup, the part after it is the variable name handed to that lookup. Tokens without a
    registered prefix go to the default lookup with the whole token as variable name.

    Registering lookups while other threads resolve tokens is not synchronized; finish
    registration before sharing the registry.
    """

    def __init__(
        self,
        prefix_separator: str = DEFAULT_PREFIX_SEPARATOR,
        default_lookup: Optional[Lookup] = None,
        parent: Optional[LookupRegistry] = None,
    ):
        """Initialize lookup registry.

        Args:
            prefix_separator: Separator between prefix and variable name  # (e.g. ":" in "env:HOME")
            default_lookup: Lookup for tokens without a registered prefix  # (None resolves nothing)
            parent: Registry asked for tokens this registry cannot resolve
        """
        if not prefix_separator:
            raise InvalidArgumentError("Prefix separator must not be empty!")
        self.prefix_separator = prefix_separator
        self.parent = parent
        self._default_lookup: Optional[Lookup] = None
        self._lookups: Dict[str, Lookup] = {}  # (prefix -> lookup, in registration order)
        if default_lookup is not None:
            self.default_lookup = default_lookup

    @property
    def default_lookup(self) -> Optional[Lookup]:
        """Lookup used for unprefixed tokens."""
        return self._default_lookup

    @default_lookup.setter
    def default_lookup(self, lookup: Optional[Lookup]) -> None:
        if lookup is not None:
            self._check_lookup(lookup)
        self._default_lookup = lookup

    def register(self, prefix: str, lookup: Lookup) -> None:
        """Register a lookup for a prefix, replacing any lookup registered before.

        Args:
            prefix: Case-sensitive prefix  # (non-empty, without the prefix separator)
            lookup: Lookup to register

        Raises:
            InvalidArgumentError: If prefix or lookup are invalid
        """
        if not isinstance(prefix, str) or not prefix:
            raise InvalidArgumentError("Prefix must be a non-empty string!")
        if self.prefix_separator in prefix:
            raise InvalidArgumentError(
                f"Prefix '{prefix}' must not contain the prefix separator '{self.prefix_separator}'"
            )
        self._check_lookup(lookup)

        if prefix in self._lookups:
            logger.debug("lookup_replaced", prefix=prefix, lookup=type(lookup).__name__)
        self._lookups[prefix] = lookup

    def deregister(self, prefix: str) -> bool:
        """Remove the lookup of a prefix.

        Returns:
            True if a lookup was registered for the prefix
        """
        return self._lookups.pop(prefix, None) is not None

    def prefixes(self) -> List[str]:
        """Registered prefixes in registration order."""
        return list(self._lookups)

    def get_lookup(self, prefix: str) -> Optional[Lookup]:
        return self._lookups.get(prefix)

    def __contains__(self, prefix: str) -> bool:
        return prefix in self._lookups

    def resolve_prefixed(self, prefix: str, name: str) -> Optional[str]:
        """Resolve a variable name with the lookup of one prefix only.

        Returns:
            Resolved value or None  # (None for unregistered prefixes, too)
        """
        lookup = self._lookups.get(prefix)
        if lookup is None:
            return None
        return self._call_lookup(lookup, name, prefix)

    def resolve(self, token: str) -> Optional[str]:
        """Resolve a complete placeholder token.

        Args:
            token: Text between the placeholder markers  # (e.g. "env:HOME" or "server.host")

        Returns:
            Resolved value or None if no lookup knows the token
        """
        value = None
        prefix, separator, name = token.partition(self.prefix_separator)
        if separator and prefix in self._lookups:
            value = self._call_lookup(self._lookups[prefix], name, prefix)

        # Unprefixed, unknown prefix, or the prefixed lookup did not know the name
        if value is None and self._default_lookup is not None:
            value = self._call_lookup(self._default_lookup, token, None)

        if value is None and self.parent is not None:
            value = self.parent.resolve(token)
        return value

    def _call_lookup(self, lookup: Lookup, name: str, prefix: Optional[str]) -> Optional[str]:
        """Call a lookup, treating failures as unknown names."""
        try:
            return lookup.resolve(name)
        except RecursionError:
            # Runaway nesting is handled by the interpolator, not a failure of this lookup
            raise
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "lookup_failed",
                prefix=prefix,
                variable=name,
                lookup=type(lookup).__name__,
                error=str(e),
            )
            return None

    @staticmethod
    def _check_lookup(lookup: Lookup) -> None:
        if not callable(getattr(lookup, "resolve", None)):
            raise InvalidArgumentError(f"Lookup {lookup!r} must provide a resolve(name) method")


def default_registry(**kwargs) -> LookupRegistry:
    """Create a registry with the standard ``sys``, ``env`` and ``const`` lookups.

    Args:
        **kwargs: Passed to LookupRegistry  # (prefix_separator, default_lookup, parent)

    Returns:
        New registry
    """
    registry = LookupRegistry(**kwargs)
    registry.register("sys", SystemLookup())
    registry.register("env", EnvironmentLookup())
    registry.register("const", ConstantLookup())
    return registry
