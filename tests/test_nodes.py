"""Test cases for the configuration node tree and the in-memory node source."""

import threading

import pytest
from lookconf import ConfigurationNode, InMemoryNodeSource, InvalidArgumentError


def build_tree() -> ConfigurationNode:
    """Create a small tree: root -> server(host, port), database(url)."""
    root = ConfigurationNode()
    server = root.add_child_named("server")
    server.add_child_named("host", "localhost")
    server.add_child_named("port", 8080)
    server.set_attribute("secure", True)
    database = root.add_child_named("database")
    database.add_child_named("url", "jdbc://db")
    return root


def test_children_keep_insertion_order():
    """Test child ordering and parent back-references."""
    root = build_tree()

    assert [child.name for child in root.children] == ["server", "database"]
    server = root.get_child(0)
    assert [child.name for child in server.get_children()] == ["host", "port"]
    assert server.parent is root
    assert server.get_children("port")[0].value == 8080
    assert root.child_count() == 2
    assert server.child_count("host") == 1
    assert root.is_root() and not server.is_root()


def test_attached_nodes_cannot_be_added_twice():
    root = build_tree()
    other = ConfigurationNode("other")

    with pytest.raises(InvalidArgumentError):
        other.add_child(root.get_child(0))
    with pytest.raises(InvalidArgumentError):
        root.add_child(None)


def test_cycles_are_rejected():
    """Test that a node never becomes its own descendant.

    Given a detached subtree a -> b -> c
    When adding a to c, or a to itself
    Then the operation fails and the tree is unchanged
    """
    a = ConfigurationNode("a")
    b = a.add_child_named("b")
    c = b.add_child_named("c")

    with pytest.raises(InvalidArgumentError):
        c.add_child(a)
    with pytest.raises(InvalidArgumentError):
        a.add_child(a)

    assert a.parent is None
    assert c.child_count() == 0


def test_removing_children():
    root = build_tree()
    server = root.get_child(0)
    host = server.get_child(0)

    assert server.remove_child(host) is True
    assert host.parent is None
    assert server.remove_child(host) is False

    server.add_child_named("alias", "a")
    server.add_child_named("alias", "b")
    assert server.remove_children("alias") == 2
    assert [child.name for child in server.children] == ["port"]
    assert root.remove_children() == 2
    assert not root.is_defined()


def test_attributes():
    node = ConfigurationNode("server")
    node.set_attribute("port", 8080)
    node.set_attribute("host", "localhost")

    assert node.attribute_names() == ["port", "host"]
    assert node.get_attribute("port") == 8080
    assert node.get_attribute("missing", "default") == "default"
    assert node.has_attribute("host")
    assert node.remove_attribute("host") is True
    assert node.remove_attribute("host") is False
    with pytest.raises(InvalidArgumentError):
        node.set_attribute("", 1)


def test_structure_helpers():
    root = build_tree()
    port = root.get_child(0).get_child(1)

    assert port.path() == "server.port"
    assert port.root() is root
    assert [node.name for node in root.walk()] == ["", "server", "host", "port", "database", "url"]
    assert ConfigurationNode("empty").is_defined() is False
    assert ConfigurationNode("valued", 0).is_defined() is True


def test_copy_is_deep_and_detached():
    """Test copying a subtree.

    Given a subtree with values, attributes and children
    When copying it and changing the copy
    Then the original is unaffected and the copy has no parent
    """
    root = build_tree()
    root.get_child(1).get_child(0).value = ["a", "b"]
    server_copy = root.get_child(0).copy()

    assert server_copy.parent is None
    assert server_copy.get_attribute("secure") is True
    assert [child.value for child in server_copy.children] == ["localhost", 8080]

    server_copy.get_child(0).value = "changed"
    server_copy.set_attribute("secure", False)
    assert root.get_child(0).get_child(0).value == "localhost"
    assert root.get_child(0).get_attribute("secure") is True

    database_copy = root.get_child(1).copy()
    database_copy.get_child(0).value.append("c")
    assert root.get_child(1).get_child(0).value == ["a", "b"]


def test_node_source_starts_with_an_empty_root():
    source = InMemoryNodeSource()

    root = source.get_root()
    assert root is not None
    assert root.name == ""
    assert not root.is_defined()


def test_node_source_rejects_missing_root():
    source = InMemoryNodeSource()
    with pytest.raises(InvalidArgumentError):
        source.set_root(None)
    assert source.get_root() is not None


def test_root_swap_keeps_old_readers_consistent():
    """Test root swap atomicity.

    Given a reader holding the root fetched before a swap
    When the source root is replaced
    Then the reader still sees the complete old tree and new readers see the new one
    """
    old_tree = build_tree()
    source = InMemoryNodeSource(old_tree)
    held = source.get_root()

    new_tree = ConfigurationNode()
    new_tree.add_child_named("server").add_child_named("host", "example.org")
    source.set_root(new_tree)

    assert held is old_tree
    assert held.get_child(0).get_child(0).value == "localhost"
    assert [child.name for child in held.children] == ["server", "database"]
    assert source.get_root().get_child(0).get_child(0).value == "example.org"


def test_concurrent_readers_never_see_mixed_trees():
    """Test readers against a writer swapping roots.

    Given trees whose leaves all carry the same generation number
    When one thread keeps swapping roots while readers walk the current root
    Then every walked tree is uniform
    """

    def tree_of_generation(generation: int) -> ConfigurationNode:
        root = ConfigurationNode()
        for idx in range(20):
            root.add_child_named(f"leaf{idx}", generation)
        return root

    source = InMemoryNodeSource(tree_of_generation(0))
    stop = threading.Event()
    errors = []  # List[str] (inconsistencies seen by readers)

    def writer():
        generation = 0
        while not stop.is_set():
            generation += 1
            source.set_root(tree_of_generation(generation))

    def reader():
        for _ in range(500):
            values = {node.value for node in source.get_root().children}
            if len(values) != 1:
                errors.append(f"mixed generations {values}")

    writer_thread = threading.Thread(target=writer)
    reader_threads = [threading.Thread(target=reader) for _ in range(4)]
    writer_thread.start()
    for thread in reader_threads:
        thread.start()
    for thread in reader_threads:
        thread.join()
    stop.set()
    writer_thread.join()

    assert errors == []
