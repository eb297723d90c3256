"""
Translator registry for the structured serializer.

A translator is a named (predicate, transform) pair that turns a value the
JSON encoder cannot represent faithfully into one it can. Translators are
evaluated in registration order and the first matching predicate wins.
Predicates run on every node of every serialization, so they must be cheap
and free of side effects.
"""

import functools
import inspect
import logging
import math
import re
from typing import Any, Callable, List, NamedTuple, Optional
from xml.dom import minidom
from xml.etree import ElementTree

from faultline.services.errors import DuplicateTranslatorError

logger = logging.getLogger(__name__)


class _Undefined:
    """Marker for a value that was never supplied."""

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()


class Translator(NamedTuple):
    """A named (predicate, transform) pair."""

    name: str
    predicate: Callable[[Any], bool]
    transform: Callable[[Any], Any]


class TranslatorRegistry:
    """Ordered, append-only collection of translators."""

    def __init__(self):
        self._translators: List[Translator] = []

    def register(
        self,
        name: str,
        predicate: Callable[[Any], bool],
        transform: Callable[[Any], Any]
    ) -> Translator:
        """
        Append a translator.

        Args:
            name: Unique translator name
            predicate: Returns True for values this translator handles
            transform: Converts a matching value to a serializable one

        Returns:
            The registered translator

        Raises:
            ValueError: If the name is empty or a callable is missing
            DuplicateTranslatorError: If the name is already registered
        """
        if not name or not callable(predicate) or not callable(transform):
            raise ValueError(
                "A translator requires a name, a predicate function and a transform function"
            )
        if name in self:
            raise DuplicateTranslatorError(f"Translator '{name}' is already registered")

        translator = Translator(name, predicate, transform)
        self._translators.append(translator)
        logger.debug(f"Registered translator '{name}' at position {len(self._translators) - 1}")
        return translator

    def match(self, value: Any) -> Optional[Translator]:
        """Return the first translator whose predicate accepts ``value``."""
        for translator in self._translators:
            if translator.predicate(value):
                return translator
        return None

    def names(self) -> List[str]:
        return [translator.name for translator in self._translators]

    def __contains__(self, name: object) -> bool:
        return any(translator.name == name for translator in self._translators)

    def __len__(self) -> int:
        return len(self._translators)

    def __iter__(self):
        return iter(list(self._translators))

    @classmethod
    def with_default_translators(cls) -> "TranslatorRegistry":
        """Create a registry preloaded with the default translators."""
        registry = cls()
        register_default_translators(registry)
        return registry


# Default translators

def function_name(fn: Any) -> str:
    """Name of a callable, or 'anonymous' for lambdas and nameless callables."""
    if isinstance(fn, functools.partial):
        return function_name(fn.func)
    name = getattr(fn, "__name__", "") or ""
    if not name or name == "<lambda>":
        return "anonymous"
    return name


def is_function(value: Any) -> bool:
    return inspect.isroutine(value) or isinstance(value, functools.partial)


def is_nan(value: Any) -> bool:
    # bool is an int, never a float, so only real floats get here
    return isinstance(value, float) and math.isnan(value)


def is_infinite(value: Any) -> bool:
    return isinstance(value, float) and math.isinf(value)


def is_element(value: Any) -> bool:
    return isinstance(value, (ElementTree.Element, minidom.Node))


def compose_markup(element: Any) -> str:
    """Build markup for an element from its parts, without a serializer."""
    if isinstance(element, minidom.Node):
        if element.nodeType == minidom.Node.TEXT_NODE:
            return element.data
        children = "".join(compose_markup(child) for child in element.childNodes)
        tag = element.nodeName
        attributes = ""
        if element.attributes:
            attributes = "".join(
                f' {name}="{value}"' for name, value in element.attributes.items()
            )
        return f"<{tag}{attributes}>{children}</{tag}>"

    attributes = "".join(f' {name}="{value}"' for name, value in element.attrib.items())
    children = "".join(
        compose_markup(child) + (child.tail or "") for child in element
    )
    return f"<{element.tag}{attributes}>{element.text or ''}{children}</{element.tag}>"


def element_markup(element: Any) -> str:
    """Serialized markup for an element, preferring the library serializer."""
    try:
        if isinstance(element, minidom.Node):
            return element.toxml()
        return ElementTree.tostring(element, encoding="unicode")
    except Exception:
        return compose_markup(element)


def register_default_translators(registry: TranslatorRegistry) -> None:
    """Register the default translators; order matters."""
    registry.register("undefined", lambda value: value is UNDEFINED, lambda value: "undefined")
    registry.register("function", is_function, lambda value: f"[function: {function_name(value)}]")
    registry.register("regex", lambda value: isinstance(value, re.Pattern), repr)
    registry.register("NaN", is_nan, lambda value: "NaN")
    registry.register("infinite", is_infinite, str)
    registry.register("element", is_element, lambda value: f"[element: {element_markup(value)}]")
    registry.register(
        "exception",
        lambda value: isinstance(value, BaseException),
        lambda value: f"{type(value).__name__}: {value}"
    )
