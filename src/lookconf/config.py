"""LookConf hierarchical configuration module."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from .exceptions import ConversionError, InvalidArgumentError
from .interpolation import DEFAULT_ESCAPE, DEFAULT_MAX_DEPTH, DEFAULT_PREFIX, DEFAULT_SUFFIX, Interpolator
from .lookups import ConfigurationLookup, Lookup
from .nodes import ConfigurationNode, InMemoryNodeSource
from .registry import LookupRegistry, default_registry
from .utils import load_yaml_scalar, parse_key, split_list

DEFAULT_LIST_DELIMITER = ","
ATTRIBUTE_MARKER = "@"

_MISSING = object()


class HierarchicalConfiguration:
    """Configuration backed by a tree of configuration nodes.

    Keys are dot separated node names (``server.host``); a trailing ``[@name]`` addresses an
    attribute (``server[@port]``). Several children with the same name form a list: all their
    values are returned in document order.

    Raw values are returned by ``get_property``; ``get``, ``get_string`` and friends resolve
    placeholders through the configuration's interpolator first.
    """

    def __init__(
        self,
        source: Optional[InMemoryNodeSource] = None,
        registry: Optional[LookupRegistry] = None,
        list_delimiter: str = DEFAULT_LIST_DELIMITER,
        prefix: str = DEFAULT_PREFIX,
        suffix: str = DEFAULT_SUFFIX,
        escape: Optional[str] = DEFAULT_ESCAPE,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        """Initialize configuration.

        Args:
            source: Node source holding the tree  # (a new empty source when omitted)
            registry: Lookups for prefixed placeholders  # (sys, env and const when omitted)
            list_delimiter: Character splitting string values into lists  # ("\\0" disables splitting)
            prefix: Marker opening a placeholder
            suffix: Marker closing a placeholder
            escape: Text making a directly following prefix literal
            max_depth: Maximum nesting of recursive resolutions
        """
        self.source = source if source is not None else InMemoryNodeSource()
        self.registry = registry if registry is not None else default_registry()
        if self.registry.default_lookup is None:
            # Unprefixed placeholders refer to other keys of this configuration
            self.registry.default_lookup = ConfigurationLookup(self)
        self.list_delimiter = list_delimiter
        self.interpolator = Interpolator(self.registry, prefix, suffix, escape, max_depth)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], **kwargs) -> HierarchicalConfiguration:
        """Build a configuration from nested dictionaries.

        Args:
            data: Configuration data  # (dicts become nodes, lists of dicts repeated nodes, "@key" attributes)
            **kwargs: Passed to the constructor

        Returns:
            New configuration
        """
        root = ConfigurationNode()
        _fill_node(root, data)
        return cls(InMemoryNodeSource(root), **kwargs)

    # Node source

    @property
    def root(self) -> ConfigurationNode:
        """Current root node of the source."""
        return self.source.get_root()

    @root.setter
    def root(self, node: ConfigurationNode) -> None:
        self.source.set_root(node)

    @property
    def list_delimiter(self) -> str:
        return self._list_delimiter

    @list_delimiter.setter
    def list_delimiter(self, delimiter: str) -> None:
        if not isinstance(delimiter, str) or len(delimiter) != 1:
            raise InvalidArgumentError(f"List delimiter must be a single character, got {delimiter!r}")
        self._list_delimiter = delimiter

    # Lookups

    def add_lookup(self, prefix: str, lookup: Lookup) -> None:
        """Register an additional lookup for placeholders like ``${prefix:name}``."""
        self.registry.register(prefix, lookup)

    # Raw access

    def get_property(self, key: str) -> Any:
        """Get the raw value of a key.

        Args:
            key: Key path  # (e.g. "server.host" or "server[@port]")

        Returns:
            Single value, list of values (several nodes or a list value), or None if undefined
        """
        values = self._collect_values(key)
        if not values:
            return None
        return values[0] if len(values) == 1 else values

    def set_property(self, key: str, value: Any) -> None:
        """Set the value of a key, replacing all existing values.

        String values are split at the list delimiter. Missing nodes are created.

        Args:
            key: Key path
            value: Scalar, list of scalars or delimited string
        """
        names, attribute = self._parse(key)
        value = self._split(value)

        # Repeated nodes collapse into the first one
        nodes = self._fetch_nodes(names)
        for extra in nodes[1:]:
            extra.parent.remove_child(extra)
        node = nodes[0] if nodes else self._create_path(names)

        if attribute is not None:
            node.set_attribute(attribute, value)
        else:
            node.value = value

    def add_property(self, key: str, value: Any) -> None:
        """Add a value to a key, turning an existing single value into a list.

        Args:
            key: Key path
            value: Scalar, list of scalars or delimited string
        """
        names, attribute = self._parse(key)
        nodes = self._fetch_nodes(names)
        node = nodes[-1] if nodes else self._create_path(names)

        new_values = self._split(value)
        new_values = new_values if isinstance(new_values, list) else [new_values]
        current = node.get_attribute(attribute) if attribute is not None else node.value

        if current is None:
            combined = new_values[0] if len(new_values) == 1 else new_values
        elif isinstance(current, list):
            combined = current + new_values
        else:
            combined = [current] + new_values

        if attribute is not None:
            node.set_attribute(attribute, combined)
        else:
            node.value = combined

    def clear_property(self, key: str) -> None:
        """Remove the values of a key but keep its nodes (and their children)."""
        names, attribute = self._parse(key)
        for node in self._fetch_nodes(names):
            if attribute is not None:
                node.remove_attribute(attribute)
            else:
                node.value = None
        self._prune(names)

    def clear_tree(self, key: str) -> None:
        """Remove the nodes of a key together with all their children."""
        names, attribute = self._parse(key)
        if attribute is not None:
            raise InvalidArgumentError(f"Key '{key}' addresses an attribute, not a subtree")
        for node in self._fetch_nodes(names):
            if node.parent is not None:
                node.parent.remove_child(node)
        self._prune(names[:-1])

    def clear(self) -> None:
        """Remove all content by installing a new empty root."""
        self.source.set_root(ConfigurationNode())

    def contains_key(self, key: str) -> bool:
        return bool(self._collect_values(key))

    def keys(self, prefix: Optional[str] = None) -> List[str]:
        """Defined keys in document order, without duplicates.

        Args:
            prefix: Only keys equal to or below this key  # (e.g. "server")

        Returns:
            Key paths with values  # (attributes as "path[@name]")
        """
        result: Dict[str, None] = {}  # (ordered set of keys)
        for node, path in self._iter_nodes(self.root, ""):
            if node.value is not None and path:
                result[path] = None
            for attribute in node.attribute_names():
                result[f"{path}[{ATTRIBUTE_MARKER}{attribute}]"] = None

        if prefix is None:
            return list(result)
        return [key for key in result if key == prefix or key.startswith(prefix + ".") or key.startswith(prefix + "[")]

    def is_empty(self) -> bool:
        return not self.keys()

    # Interpolated access

    def interpolate(self, value: Any, key: Optional[str] = None) -> Any:
        """Resolve placeholders in a value (strings and lists of strings).

        Args:
            value: Value to interpolate
            key: Key the value belongs to  # (placeholders referring back to it are left as written)
        """
        if isinstance(value, list):
            return [self.interpolator.substitute(item, key) for item in value if item is not None]
        if value is None:
            return None
        return self.interpolator.substitute(value, key)

    def get(self, key: str, default: Any = None) -> Any:
        """Get the interpolated value of a key (scalar or list), or the default if undefined."""
        value = self.get_property(key)
        if value is None:
            return default
        return self.interpolate(value, key)

    def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get the interpolated value of a key as string; the first element is used for lists."""
        value = self.get_property(key)
        if isinstance(value, list):
            value = value[0] if value else None
        if value is None:
            return default
        return str(self.interpolate(value, key))

    def get_list(self, key: str, default: Optional[List[Any]] = None) -> List[Any]:
        """Get the interpolated values of a key as a list."""
        value = self.get_property(key)
        if value is None:
            return list(default) if default is not None else []
        values = value if isinstance(value, list) else [value]
        return self.interpolate(values, key)

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        return self._get_typed(key, int, default)

    def get_float(self, key: str, default: Optional[float] = None) -> Optional[float]:
        return self._get_typed(key, float, default)

    def get_bool(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        return self._get_typed(key, bool, default)

    def interpolated(self) -> HierarchicalConfiguration:
        """Create a copy of this configuration with all placeholders resolved.

        Resolved values are stored with their markers escaped, so reading the copy returns them
        exactly as this configuration returns them now. Values set on the copy later are
        interpolated as usual, also through the lookups of this configuration.

        Returns:
            New configuration sharing this configuration's lookups
        """
        copy = HierarchicalConfiguration(
            registry=LookupRegistry(self.registry.prefix_separator, parent=self.registry),
            list_delimiter=self.list_delimiter,
            prefix=self.interpolator.prefix,
            suffix=self.interpolator.suffix,
            # Quoting resolved values needs an escape
            escape=self.interpolator.escape or DEFAULT_ESCAPE,
            max_depth=self.interpolator.max_depth,
        )

        root = self.root.copy()
        for node in root.walk():
            path = node.path()
            if node.value is not None:
                node.value = copy._quote(self.interpolate(node.value, path))
            for attribute in node.attribute_names():
                key = f"{path}[{ATTRIBUTE_MARKER}{attribute}]"
                node.set_attribute(attribute, copy._quote(self.interpolate(node.get_attribute(attribute), key)))

        copy.root = root
        return copy

    def to_dict(self, interpolate: bool = False) -> Dict[str, Any]:
        """Convert to plain nested dictionaries (the inverse of ``from_dict``).

        Args:
            interpolate: Resolve placeholders in the values

        Returns:
            Plain dictionary representation  # (repeated nodes become lists)
        """
        return _node_to_dict(self.root, self.interpolate if interpolate else None)

    # Dict-style access

    def __getitem__(self, key: str) -> Any:
        """Dict-style getter returning the interpolated value."""
        value = self.get(key, _MISSING)
        if value is _MISSING:
            raise KeyError(f"Key path '{key}' not found")
        return value

    def __setitem__(self, key: str, value: Any) -> None:
        self.set_property(key, value)

    def __delitem__(self, key: str) -> None:
        if not self.contains_key(key):
            raise KeyError(f"Key path '{key}' not found")
        self.clear_property(key)

    def __contains__(self, key: str) -> bool:
        return self.contains_key(key)

    def __repr__(self) -> str:
        """String representation."""
        return f"HierarchicalConfiguration({self.to_dict()})"

    # Internals

    def _parse(self, key: str) -> Tuple[List[str], Optional[str]]:
        if key is None:
            raise InvalidArgumentError("Key must not be None!")
        names, attribute = parse_key(key)
        if not names and attribute is None:
            raise InvalidArgumentError(f"Invalid key '{key}'")
        return names, attribute

    def _quote(self, value: Any) -> Any:
        """Escape the markers of resolved values (and of strings inside lists)."""
        if isinstance(value, list):
            return [self.interpolator.quote(item) for item in value]
        return self.interpolator.quote(value)

    def _split(self, value: Any) -> Any:
        """Split delimited strings (and strings inside lists) into lists."""
        if isinstance(value, str):
            items = split_list(value, self.list_delimiter)
            return items[0] if len(items) == 1 else items
        if isinstance(value, (list, tuple)):
            result = []  # List[Any] (flattened values)
            for item in value:
                split = self._split(item)
                result.extend(split if isinstance(split, list) else [split])
            return result
        return value

    def _fetch_nodes(self, names: List[str]) -> List[ConfigurationNode]:
        """All nodes matching a path; repeated names fan out in document order."""
        nodes = [self.root]
        for name in names:
            nodes = [child for node in nodes for child in node.get_children(name)]
            if not nodes:
                break
        return nodes

    def _collect_values(self, key: str) -> List[Any]:
        names, attribute = parse_key(key) if key else ([], None)
        if not names and attribute is None:
            return []

        values = []  # List[Any] (values of all matching nodes)
        for node in self._fetch_nodes(names):
            value = node.get_attribute(attribute) if attribute is not None else node.value
            if isinstance(value, list):
                values.extend(value)
            elif value is not None:
                values.append(value)
        return values

    def _create_path(self, names: List[str]) -> ConfigurationNode:
        """Walk down a path, creating missing nodes (first match wins for existing ones)."""
        node = self.root
        for name in names:
            children = node.get_children(name)
            node = children[0] if children else node.add_child_named(name)
        return node

    def _prune(self, names: List[str]) -> None:
        """Remove nodes along a path that no longer hold anything, deepest first."""
        for depth in range(len(names), 0, -1):
            for node in self._fetch_nodes(names[:depth]):
                if not node.is_defined() and node.parent is not None:
                    node.parent.remove_child(node)

    def _iter_nodes(self, node: ConfigurationNode, path: str) -> Iterator[Tuple[ConfigurationNode, str]]:
        yield node, path
        for child in node.children:
            child_path = f"{path}.{child.name}" if path else child.name
            yield from self._iter_nodes(child, child_path)

    def _get_typed(self, key: str, target_type: type, default: Any) -> Any:
        """Get an interpolated value converted like a YAML scalar.

        Raises:
            ConversionError: If the value does not convert to the target type
        """
        value = self.get_string(key)
        if value is None:
            return default

        converted = load_yaml_scalar(value)
        if target_type is float and isinstance(converted, int) and not isinstance(converted, bool):
            converted = float(converted)
        if not isinstance(converted, target_type) or (target_type is int and isinstance(converted, bool)):
            raise ConversionError(key, value, target_type)
        return converted


def _fill_node(node: ConfigurationNode, data: Mapping[str, Any]) -> None:
    """Recursively add the content of a dictionary to a node.

    Args:
        node: Node to fill
        data: Configuration data  # (nested dict structure)
    """
    for key, value in data.items():
        if key.startswith(ATTRIBUTE_MARKER):
            node.set_attribute(key[len(ATTRIBUTE_MARKER) :], value)
        elif isinstance(value, Mapping):
            _fill_node(node.add_child_named(key), value)
        elif isinstance(value, list) and any(isinstance(item, Mapping) for item in value):
            # List of mappings: one child node per item
            for item in value:
                if isinstance(item, Mapping):
                    _fill_node(node.add_child_named(key), item)
                else:
                    node.add_child_named(key, item)
        else:
            node.add_child_named(key, list(value) if isinstance(value, (list, tuple)) else value)


def _node_to_dict(node: ConfigurationNode, convert: Optional[Callable[[Any], Any]]) -> Dict[str, Any]:
    """Convert the children and attributes of a node to a plain dictionary.

    Args:
        node: Node to convert
        convert: Applied to every value  # (e.g. interpolation; None keeps raw values)

    Returns:
        Plain dictionary  # (repeated child names become lists of entries)
    """
    result: Dict[str, Any] = {}

    for attribute in node.attribute_names():
        value = node.get_attribute(attribute)
        result[ATTRIBUTE_MARKER + attribute] = convert(value) if convert else value

    for name in dict.fromkeys(child.name for child in node.children):
        entries = []  # List[Any] (converted entries of all children with this name)
        for child in node.get_children(name):
            if child.children or child.attribute_names():
                entries.append(_node_to_dict(child, convert))
            elif convert and child.value is not None:
                entries.append(convert(child.value))
            else:
                entries.append(child.value)
        result[name] = entries[0] if len(entries) == 1 else entries

    return result
