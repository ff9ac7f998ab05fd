"""Test cases for the lookup registry and the built-in lookups."""

import math
import os
import platform

import pytest
from lookconf import (
    ConstantLookup,
    EnvironmentLookup,
    FunctionLookup,
    InvalidArgumentError,
    LookupRegistry,
    MapLookup,
    SystemLookup,
    default_registry,
)
from tests.conftest import RecordingLookup, cleanup_env_vars, set_env_vars


class FailingLookup:
    def resolve(self, name):
        raise RuntimeError(f"broken lookup for {name}")


def test_prefix_dispatch_calls_only_the_matching_lookup():
    """Test dispatching by prefix.

    Given L1 registered for "p1" and L2 for "p2"
    When resolving "p1:foo"
    Then L1 receives "foo" and L2 is not asked
    """
    first = RecordingLookup({"foo": "one"})
    second = RecordingLookup({"foo": "two"})
    registry = LookupRegistry()
    registry.register("p1", first)
    registry.register("p2", second)

    assert registry.resolve("p1:foo") == "one"
    assert registry.resolve_prefixed("p2", "foo") == "two"
    assert first.calls == ["foo"]
    assert second.calls == ["foo"]


def test_token_is_split_at_the_first_separator():
    lookup = RecordingLookup({"a:b": "nested"})
    registry = LookupRegistry()
    registry.register("p", lookup)

    assert registry.resolve("p:a:b") == "nested"
    assert lookup.calls == ["a:b"]


def test_unprefixed_and_unregistered_tokens_go_to_the_default_lookup():
    """Test the default lookup.

    Given a default lookup and a registry without prefix "nope"
    When resolving "plain" and "nope:foo"
    Then the default lookup receives the whole tokens
    """
    default = RecordingLookup({"plain": "value"})
    registry = LookupRegistry(default_lookup=default)

    assert registry.resolve("plain") == "value"
    assert registry.resolve("nope:foo") is None
    assert default.calls == ["plain", "nope:foo"]


def test_prefixed_miss_falls_back_to_default_lookup():
    default = RecordingLookup({"env:MISSING": "from default"})
    registry = LookupRegistry(default_lookup=default)
    registry.register("env", MapLookup({}))

    assert registry.resolve("env:MISSING") == "from default"


def test_unresolved_tokens_are_delegated_to_the_parent():
    parent = LookupRegistry(default_lookup=MapLookup({"shared": "parent value"}))
    parent.register("p", MapLookup({"x": "parent x"}))
    child = LookupRegistry(default_lookup=MapLookup({"own": "child value"}), parent=parent)

    assert child.resolve("own") == "child value"
    assert child.resolve("shared") == "parent value"
    assert child.resolve("p:x") == "parent x"
    assert child.resolve("unknown") is None


def test_registration_rules():
    """Test prefix validation, replacement and deregistration."""
    registry = LookupRegistry()
    first, second = MapLookup({"k": "1"}), MapLookup({"k": "2"})

    registry.register("p", first)
    registry.register("P", second)
    assert registry.resolve("p:k") == "1"  # Prefixes are case-sensitive
    assert registry.prefixes() == ["p", "P"]

    # Last registration wins
    registry.register("p", second)
    assert registry.get_lookup("p") is second
    assert registry.resolve("p:k") == "2"

    assert registry.deregister("p") is True
    assert registry.deregister("p") is False
    assert "p" not in registry
    assert registry.resolve_prefixed("p", "k") is None


@pytest.mark.parametrize("prefix", ["", "a:b", None])
def test_invalid_prefixes_are_rejected(prefix):
    with pytest.raises(InvalidArgumentError):
        LookupRegistry().register(prefix, MapLookup())


def test_objects_without_resolve_are_rejected():
    registry = LookupRegistry()
    with pytest.raises(InvalidArgumentError):
        registry.register("p", object())
    with pytest.raises(InvalidArgumentError):
        registry.default_lookup = "not a lookup"


def test_custom_prefix_separator():
    registry = LookupRegistry(prefix_separator="|")
    registry.register("env", MapLookup({"HOME": "/home/me"}))

    assert registry.resolve("env|HOME") == "/home/me"
    assert registry.resolve("env:HOME") is None
    with pytest.raises(InvalidArgumentError):
        registry.register("a|b", MapLookup())


def test_failing_lookup_is_treated_as_not_found():
    registry = LookupRegistry(default_lookup=MapLookup({"bad:x": "fallback"}))
    registry.register("bad", FailingLookup())

    assert registry.resolve_prefixed("bad", "x") is None
    assert registry.resolve("bad:x") == "fallback"


def test_default_registry_prefixes():
    registry = default_registry()
    assert registry.prefixes() == ["sys", "env", "const"]
    assert registry.default_lookup is None


def test_environment_lookup_takes_a_snapshot():
    """Test the environment lookup.

    Given an environment variable set before the lookup is created
    When the variable changes afterwards
    Then the lookup still returns the value of its snapshot
    """
    set_env_vars(LOOKCONF_TEST_VAR="before")
    try:
        lookup = EnvironmentLookup()
        set_env_vars(LOOKCONF_TEST_VAR="after")

        assert lookup.resolve("LOOKCONF_TEST_VAR") == "before"
        assert EnvironmentLookup().resolve("LOOKCONF_TEST_VAR") == "after"
        assert lookup.resolve("LOOKCONF_UNDEFINED_VAR") is None
    finally:
        cleanup_env_vars("LOOKCONF_TEST_VAR")

    assert EnvironmentLookup({"A": "1"}).resolve("A") == "1"


def test_system_lookup():
    lookup = SystemLookup()

    assert lookup.resolve("file.separator") == os.sep
    assert lookup.resolve("path.separator") == os.pathsep
    assert lookup.resolve("python.version") == platform.python_version()
    assert lookup.resolve("no.such.property") is None


def test_constant_lookup():
    lookup = ConstantLookup()

    assert lookup.resolve("math.pi") == str(math.pi)
    assert lookup.resolve("os.sep") == os.sep
    assert lookup.resolve("tests.data.expression.TextUtils.SEPARATOR") == "-"
    assert lookup.resolve("no_such_module.CONSTANT") is None
    assert lookup.resolve("math.no_such_constant") is None


def test_map_and_function_lookups():
    mapping = MapLookup({"int": 3, "none": None})
    assert mapping.resolve("int") == "3"
    assert mapping.resolve("none") is None
    assert mapping.resolve("missing") is None

    function = FunctionLookup(lambda name: len(name) if name.startswith("len") else None)
    assert function.resolve("length") == "6"
    assert function.resolve("other") is None
