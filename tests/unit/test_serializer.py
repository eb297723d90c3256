"""
Unit tests for the structured serializer.
"""

import json

import pytest

from faultline.services.serializer import Serializer
from faultline.services.translators import TranslatorRegistry, UNDEFINED


class Node:
    """Plain object used to build graphs."""

    def __init__(self, name):
        self.name = name
        self._hidden = "private"


@pytest.fixture
def serializer() -> Serializer:
    """Create serializer with default translators."""
    return Serializer()


def test_plain_values(serializer):
    """Test JSON native values are encoded compactly."""
    assert serializer.serialize({"a": 1, "b": [True, None, "x"]}) == '{"a":1,"b":[true,null,"x"]}'
    assert serializer.serialize("text") == '"text"'
    assert serializer.serialize(3) == "3"


def test_tuple_and_non_string_keys(serializer):
    """Test tuples become lists and keys become text."""
    assert serializer.serialize((1, 2)) == "[1,2]"
    assert serializer.serialize({1: "one"}) == '{"1":"one"}'


def test_set_is_sorted_list(serializer):
    """Test sets serialize in a stable order."""
    assert serializer.serialize({3, 1, 2}) == "[1,2,3]"


def test_plain_object_public_attributes(serializer):
    """Test objects serialize their public attributes."""
    assert serializer.serialize(Node("root")) == '{"name":"root"}'


def test_self_reference_dict(serializer):
    """Test a dict containing itself serializes with a placeholder."""
    a = {"name": "a"}
    a["self"] = a

    assert serializer.serialize(a) == '{"name":"a","self":"circularRef_0"}'


def test_self_reference_object(serializer):
    """Test an object referring to itself does not loop."""
    node = Node("loop")
    node.self = node

    assert serializer.serialize(node) == '{"name":"loop","self":"circularRef_0"}'


def test_circular_reference_index(serializer):
    """Test the placeholder encodes the seen-list position."""
    child = {"name": "child"}
    parent = {"child": child}
    child["parent"] = parent

    output = json.loads(serializer.serialize([parent]))

    # seen: [list, parent, child]
    assert output == [{"child": {"name": "child", "parent": "circularRef_1"}}]


def test_seen_list_is_per_call(serializer):
    """Test identities are not remembered across calls."""
    shared = {"x": 1}

    assert serializer.serialize(shared) == '{"x":1}'
    assert serializer.serialize(shared) == '{"x":1}'


def test_default_translators_applied(serializer):
    """Test translated values appear in the output."""
    def handler():
        pass

    value = {
        "fn": handler,
        "nan": float("nan"),
        "inf": float("inf"),
        "missing": UNDEFINED,
    }

    assert json.loads(serializer.serialize(value)) == {
        "fn": "[function: handler]",
        "nan": "NaN",
        "inf": "inf",
        "missing": "undefined",
    }


def test_translation_error_degrades_single_field():
    """Test a failing transform only affects its own node."""
    registry = TranslatorRegistry.with_default_translators()

    def explode(value):
        raise RuntimeError("cannot translate")

    registry.register("bytes", lambda value: isinstance(value, bytes), explode)
    serializer = Serializer(registry)

    output = json.loads(serializer.serialize({"ok": 1, "bad": b"\x00"}))

    assert output == {"ok": 1, "bad": "[translation error]: cannot translate"}


def test_translation_error_from_predicate():
    """Test a failing predicate degrades the node instead of raising."""
    registry = TranslatorRegistry()

    def picky(value):
        if value == "boom":
            raise ValueError("predicate failed")
        return False

    registry.register("picky", picky, str)
    serializer = Serializer(registry)

    assert serializer.serialize(["fine", "boom"]) == '["fine","[translation error]: predicate failed"]'


def test_translator_result_not_rewalked():
    """Test a transform result is encoded as-is."""
    registry = TranslatorRegistry()
    registry.register("node", lambda value: isinstance(value, Node), lambda value: {"node": float("nan")})
    registry.register("NaN", lambda value: value != value, lambda value: "NaN")
    serializer = Serializer(registry)

    assert serializer.serialize(Node("n")) == '{"node":NaN}'


def test_unencodable_leaf_falls_back_to_repr(serializer):
    """Test values without a JSON form use their repr."""
    class Slotted:
        __slots__ = ()

        def __repr__(self):
            return "<Slotted>"

    assert serializer.serialize([Slotted()]) == '["<Slotted>"]'


def test_serialize_never_raises():
    """Test a broken translator registry yields a failure string."""
    class BrokenRegistry(TranslatorRegistry):
        def match(self, value):
            raise RuntimeError("registry broken")

    serializer = Serializer(BrokenRegistry())

    # Every node degrades inline, so the call still succeeds
    assert serializer.serialize([1]) == '"[translation error]: registry broken"'


def test_serialization_error_string():
    """Test failures outside translation return a descriptive string."""
    class ExplodingDict(dict):
        def items(self):
            raise RuntimeError("no items")

    serializer = Serializer()

    assert serializer.serialize(ExplodingDict(a=1)) == "[serialization error]: no items"
