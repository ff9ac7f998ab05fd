"""Utility functions for LookConf."""

import builtins
import importlib
import re
from typing import Any, Callable, List, Optional, Tuple, Type

import yaml

OBJECT_TYPE = Callable | Type[Any]

ESCAPE_CHAR = "\\"


class _ScalarLoader(yaml.SafeLoader):
    """Safe loader used to convert single configuration values."""


# Custom resolver to handle scientific notation correctly
_ScalarLoader.add_implicit_resolver(
    tag="tag:yaml.org,2002:float",
    regexp=re.compile(r"-? [1-9] ( \. [0-9]* [1-9] )? ( e [-+] [1-9] [0-9]* )? $", re.X),
    first=list("-+0123456789."),
)


def load_yaml_scalar(text: str) -> Any:
    """Convert a string to the value it would have if written in YAML.

    Args:
        text: Scalar text  # (e.g. "42", "3.5", "true", "1e-4")

    Returns:
        Converted value  # (int, float, bool, None or the original string)
    """
    try:
        value = yaml.load(text, Loader=_ScalarLoader)
    except (yaml.YAMLError, ValueError):
        return text

    # Only scalars are converted; "[a, b]" or "key: value" stay plain text
    if isinstance(value, (dict, list)):
        return text
    return value


def import_object(path: str) -> OBJECT_TYPE:
    """Import an object by its module path.

    Args:
        path: Import path like 'module.submodule.ClassName' or 'module.ClassName.ATTRIBUTE'

    Returns:
        Imported object  # (class, function, constant or other importable object)

    Raises:
        ImportError: If object cannot be imported
    """
    # Handle simple names without dots (built-in objects)
    if "." not in path:
        try:
            return getattr(builtins, path)
        except AttributeError:
            raise ImportError(f"Cannot import {path}")

    # Try to import progressively from longest to shortest module path
    parts = path.split(".")  # List[str] (path components)

    # Start from the full path and work backwards
    for i in range(len(parts), 0, -1):
        module_path = ".".join(parts[:i])  # Module path to try
        remaining_parts = parts[i:]  # Remaining attribute path

        try:
            module = importlib.import_module(module_path)

            # Navigate through the remaining parts (classes, attributes, etc.)
            obj = module
            for part in remaining_parts:
                obj = getattr(obj, part)

            return obj
        except (ImportError, AttributeError, ValueError):
            # Try shorter module path
            continue

    raise ImportError(f"Cannot import {path}")


def split_list(value: str, delimiter: str) -> List[str]:
    """Split a string at unescaped delimiters.

    Args:
        value: String to split  # (e.g. "a, b\\, c")
        delimiter: Single delimiter character  # ("\\0" disables splitting)

    Returns:
        List elements with escapes removed  # (e.g. ["a", "b, c"]; stripped only when split)
    """
    if delimiter == "\0" or delimiter not in value:
        return [value]

    items = []  # List[str] (collected list elements)
    current = []  # List[str] (characters of the element being built)
    escaped = False
    for char in value:
        if escaped:
            # Keep backslashes that do not escape the delimiter
            if char != delimiter:
                current.append(ESCAPE_CHAR)
            current.append(char)
            escaped = False
        elif char == ESCAPE_CHAR:
            escaped = True
        elif char == delimiter:
            items.append("".join(current))
            current = []
        else:
            current.append(char)

    if escaped:
        current.append(ESCAPE_CHAR)
    items.append("".join(current))

    if len(items) == 1:
        # Only escaped delimiters: a single unescaped value
        return items
    return [item.strip() for item in items]


def parse_key(key: str) -> Tuple[List[str], Optional[str]]:
    """Split a configuration key into node names and an optional attribute name.

    Args:
        key: Dot separated key with optional attribute suffix  # (e.g. "server.host" or "server[@port]")

    Returns:
        Tuple of node names and attribute name  # (e.g. (["server"], "port"))
    """
    attribute = None
    match = re.fullmatch(r"(.*)\[@([^\]]+)\]", key)
    if match:
        key, attribute = match.group(1), match.group(2)

    names = [name for name in key.split(".") if name]
    return names, attribute
