"""Configuration node tree and the node source holding its root."""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, Iterator, List, Optional

from .exceptions import InvalidArgumentError

_MISSING = object()


class ConfigurationNode:
    """A named node of a configuration tree.

    A node carries a value (a scalar or an ordered list of scalars), ordered child nodes and
    attributes. The parent reference is a back-reference only: a node is owned by exactly one
    parent and a tree has exactly one node without a parent, its root.

    Structural mutation is not synchronized. Callers writing to a tree that other threads read
    must serialize those writes themselves.
    """

    def __init__(self, name: str = "", value: Any = None):
        """Initialize an empty node.

        Args:
            name: Node name  # (empty for root nodes)
            value: Node value  # (scalar, list of scalars or None)
        """
        self.name = name
        self.value = value
        self.parent: Optional[ConfigurationNode] = None
        self._children: List[ConfigurationNode] = []
        self._attributes: Dict[str, Any] = {}

    # Children

    @property
    def children(self) -> List[ConfigurationNode]:
        """Child nodes in insertion order (a copy; mutate through add/remove methods)."""
        return list(self._children)

    def add_child(self, node: ConfigurationNode) -> ConfigurationNode:
        """Append a child node.

        Args:
            node: Detached node to append

        Returns:
            The appended node

        Raises:
            InvalidArgumentError: If the node is None, already attached, or would create a cycle
        """
        if node is None:
            raise InvalidArgumentError("Child node must not be None!")
        if node.parent is not None:
            raise InvalidArgumentError(f"Node '{node.name}' already belongs to node '{node.parent.name}'")

        # Walk up from self: the new child must not be self or one of its ancestors
        ancestor: Optional[ConfigurationNode] = self
        while ancestor is not None:
            if ancestor is node:
                raise InvalidArgumentError(f"Adding node '{node.name}' would make it its own descendant")
            ancestor = ancestor.parent

        node.parent = self
        self._children.append(node)
        return node

    def add_child_named(self, name: str, value: Any = None) -> ConfigurationNode:
        """Create a child node with the given name and value and append it."""
        return self.add_child(ConfigurationNode(name, value))

    def remove_child(self, node: ConfigurationNode) -> bool:
        """Detach a child node.

        Returns:
            True if the node was a child of this node
        """
        for idx, child in enumerate(self._children):
            if child is node:
                del self._children[idx]
                child.parent = None
                return True
        return False

    def remove_children(self, name: Optional[str] = None) -> int:
        """Detach all children, or all children with the given name.

        Returns:
            Number of detached children
        """
        removed = [child for child in self._children if name is None or child.name == name]
        for child in removed:
            self.remove_child(child)
        return len(removed)

    def get_children(self, name: Optional[str] = None) -> List[ConfigurationNode]:
        """Children in order, optionally only those with the given name."""
        if name is None:
            return list(self._children)
        return [child for child in self._children if child.name == name]

    def get_child(self, index: int) -> ConfigurationNode:
        """Child at the given position (IndexError if out of range)."""
        return self._children[index]

    def child_count(self, name: Optional[str] = None) -> int:
        return len(self.get_children(name))

    # Attributes

    def set_attribute(self, name: str, value: Any) -> None:
        if not name:
            raise InvalidArgumentError("Attribute name must not be empty!")
        self._attributes[name] = value

    def get_attribute(self, name: str, default: Any = None) -> Any:
        return self._attributes.get(name, default)

    def remove_attribute(self, name: str) -> bool:
        return self._attributes.pop(name, _MISSING) is not _MISSING

    def has_attribute(self, name: str) -> bool:
        return name in self._attributes

    def attribute_names(self) -> List[str]:
        return list(self._attributes)

    # Structure

    def is_defined(self) -> bool:
        """Check whether the node holds anything (value, attributes or children)."""
        return self.value is not None or bool(self._attributes) or bool(self._children)

    def is_root(self) -> bool:
        return self.parent is None

    def root(self) -> ConfigurationNode:
        """The root of the tree this node belongs to."""
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def path(self) -> str:
        """Dot separated path from the root (root name excluded)."""
        names = []  # List[str] (node names from this node upwards)
        node = self
        while node.parent is not None:
            names.append(node.name)
            node = node.parent
        return ".".join(reversed(names))

    def walk(self) -> Iterator[ConfigurationNode]:
        """Iterate over this node and all descendants in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            # Reverse so that the first child is visited first
            stack.extend(reversed(node._children))

    def copy(self) -> ConfigurationNode:
        """Deep copy of this subtree, detached from any parent.

        Returns:
            New root node with copied values, attributes and children
        """
        clone = ConfigurationNode(self.name, deepcopy(self.value))
        clone._attributes = deepcopy(self._attributes)
        for child in self._children:
            clone.add_child(child.copy())
        return clone

    def __repr__(self) -> str:
        return f"ConfigurationNode(name={self.name!r}, value={self.value!r}, children={len(self._children)})"


class InMemoryNodeSource:
    """Node source keeping its whole configuration tree in memory.

    The source holds a single reference to the current root node. Replacing the root is one
    reference assignment, so concurrent readers observe either the old or the new tree in full.
    A reader that fetched the root before a swap keeps reading the old, now detached, tree.
    """

    def __init__(self, root: Optional[ConfigurationNode] = None):
        """Initialize node source.

        Args:
            root: Initial root node  # (an empty unnamed node when omitted)
        """
        if root is None:
            root = ConfigurationNode()
        self._root = root

    def get_root(self) -> ConfigurationNode:
        """Return the current root node."""
        return self._root

    def set_root(self, root: ConfigurationNode) -> None:
        """Replace the root node, and with it the whole content of this source.

        Args:
            root: New root node  # (a fully built tree)

        Raises:
            InvalidArgumentError: If the root node is None
        """
        if root is None:
            raise InvalidArgumentError("Root node must not be None!")
        self._root = root
