"""
Unit tests for the translator registry and default translators.
"""

import functools
import re
from xml.dom import minidom
from xml.etree import ElementTree

import pytest

from faultline.services.errors import DuplicateRegistrationError, DuplicateTranslatorError
from faultline.services.translators import (
    TranslatorRegistry,
    UNDEFINED,
    compose_markup,
    element_markup,
    function_name,
)


@pytest.fixture
def registry() -> TranslatorRegistry:
    """Create registry with the default translators."""
    return TranslatorRegistry.with_default_translators()


def named_function():
    pass


def translate(registry: TranslatorRegistry, value):
    translator = registry.match(value)
    assert translator is not None
    return translator.transform(value)


class TestRegistration:
    """Test translator registration rules."""

    def test_default_translator_order(self, registry):
        """Test default translators are registered in order."""
        assert registry.names() == [
            "undefined", "function", "regex", "NaN", "infinite", "element", "exception"
        ]

    def test_duplicate_name_fails(self, registry):
        """Test re-registering a name is rejected."""
        with pytest.raises(DuplicateTranslatorError):
            registry.register("NaN", lambda value: False, lambda value: value)

    def test_duplicate_is_registration_error(self, registry):
        """Test duplicate translator errors share the registration error base."""
        with pytest.raises(DuplicateRegistrationError):
            registry.register("function", lambda value: False, lambda value: value)

    @pytest.mark.parametrize("name,predicate,transform", [
        ("", lambda value: True, str),
        ("x", None, str),
        ("x", lambda value: True, "not callable"),
    ])
    def test_invalid_translator_rejected(self, name, predicate, transform):
        """Test a translator needs a name and two callables."""
        with pytest.raises(ValueError):
            TranslatorRegistry().register(name, predicate, transform)

    def test_first_registered_wins(self):
        """Test the earliest matching translator is used."""
        registry = TranslatorRegistry()
        registry.register("first", lambda value: isinstance(value, int), lambda value: "first")
        registry.register("second", lambda value: isinstance(value, int), lambda value: "second")

        assert registry.match(1).name == "first"

    def test_first_registered_wins_reversed(self):
        """Test the outcome follows registration order, not name."""
        registry = TranslatorRegistry()
        registry.register("second", lambda value: isinstance(value, int), lambda value: "second")
        registry.register("first", lambda value: isinstance(value, int), lambda value: "first")

        assert registry.match(1).name == "second"

    def test_no_match(self, registry):
        """Test plain values match no translator."""
        assert registry.match("text") is None
        assert registry.match(42) is None
        assert registry.match(1.5) is None

    def test_contains_and_len(self, registry):
        """Test membership and size."""
        assert "regex" in registry
        assert "missing" not in registry
        assert len(registry) == 7


class TestDefaultTranslators:
    """Test the default translator transforms."""

    def test_undefined(self, registry):
        assert translate(registry, UNDEFINED) == "undefined"

    def test_named_function(self, registry):
        assert translate(registry, named_function) == "[function: named_function]"

    def test_lambda_is_anonymous(self, registry):
        assert translate(registry, lambda: None) == "[function: anonymous]"

    def test_builtin_and_partial(self, registry):
        assert translate(registry, len) == "[function: len]"
        assert translate(registry, functools.partial(named_function)) == "[function: named_function]"

    def test_function_name_helper(self):
        assert function_name(named_function) == "named_function"
        assert function_name(lambda: None) == "anonymous"

    def test_regex(self, registry):
        assert translate(registry, re.compile(r"a+b")) == "re.compile('a+b')"

    def test_nan(self, registry):
        assert translate(registry, float("nan")) == "NaN"

    def test_infinite(self, registry):
        assert translate(registry, float("inf")) == "inf"
        assert translate(registry, float("-inf")) == "-inf"

    def test_exception(self, registry):
        assert translate(registry, ValueError("bad value")) == "ValueError: bad value"

    def test_element_tree(self, registry):
        element = ElementTree.fromstring('<p class="x">hi<b>there</b></p>')

        assert translate(registry, element) == '[element: <p class="x">hi<b>there</b></p>]'

    def test_minidom_element(self, registry):
        element = minidom.parseString("<root><item>1</item></root>").documentElement

        assert translate(registry, element) == "[element: <root><item>1</item></root>]"


class TestMarkupFallback:
    """Test markup composed without the library serializer."""

    def test_compose_element_tree(self):
        element = ElementTree.fromstring('<a href="#">link<i>x</i>tail</a>')

        assert compose_markup(element) == '<a href="#">link<i>x</i>tail</a>'

    def test_compose_minidom(self):
        element = minidom.parseString('<ul><li id="1">one</li></ul>').documentElement

        assert compose_markup(element) == '<ul><li id="1">one</li></ul>'

    def test_falls_back_when_serializer_fails(self):
        element = ElementTree.Element("div")
        element.text = "ok"
        # tostring cannot serialize a non-string tag
        child = ElementTree.SubElement(element, "span")
        child.tag = 5

        assert element_markup(element) == "<div>ok<5></5></div>"
