"""
Circular-reference safe structured serializer.

Turns an arbitrary value graph into compact JSON text for diagnostics. The
walk is depth first; every node is offered to the translator registry, and
composite nodes already seen during the same call are replaced with a
``circularRef_<index>`` placeholder instead of being descended into again.

``serialize`` runs inside error handling paths and never raises.
"""

import inspect
import json
import logging
from typing import Any, List, Optional

from faultline.services.translators import TranslatorRegistry

logger = logging.getLogger(__name__)

CIRCULAR_REF_PREFIX = "circularRef_"
TRANSLATION_ERROR_PREFIX = "[translation error]: "
SERIALIZATION_ERROR_PREFIX = "[serialization error]: "

_COMPOSITE_TYPES = (dict, list, tuple, set, frozenset)
_PRIMITIVE_TYPES = (str, bytes, int, float, bool, type(None))


def _is_plain_object(value: Any) -> bool:
    if isinstance(value, _PRIMITIVE_TYPES) or isinstance(value, type):
        return False
    if inspect.isroutine(value) or inspect.ismodule(value):
        return False
    return hasattr(value, "__dict__")


def _is_composite(value: Any) -> bool:
    return isinstance(value, _COMPOSITE_TYPES) or _is_plain_object(value)


class _Walk:
    """State for a single serialization call."""

    def __init__(self, translators: TranslatorRegistry):
        self.translators = translators
        self.seen: List[Any] = []

    def _seen_at(self, value: Any) -> int:
        for index, seen in enumerate(self.seen):
            if seen is value:
                return index
        return -1

    def translate(self, value: Any) -> Any:
        try:
            if _is_composite(value):
                seen_at = self._seen_at(value)
                if seen_at != -1:
                    return f"{CIRCULAR_REF_PREFIX}{seen_at}"
                self.seen.append(value)

            translator = self.translators.match(value)
            if translator is not None:
                return translator.transform(value)
        except Exception as e:
            return f"{TRANSLATION_ERROR_PREFIX}{e}"

        return self.descend(value)

    def descend(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {self.key(k): self.translate(v) for k, v in list(value.items())}
        if isinstance(value, (list, tuple)):
            return [self.translate(item) for item in value]
        if isinstance(value, (set, frozenset)):
            return [self.translate(item) for item in _stable_order(value)]
        if _is_plain_object(value):
            return {
                name: self.translate(attr)
                for name, attr in list(vars(value).items())
                if not name.startswith("_")
            }
        return value

    @staticmethod
    def key(key: Any) -> str:
        return key if isinstance(key, str) else str(key)


def _stable_order(items: Any) -> List[Any]:
    try:
        return sorted(items)
    except TypeError:
        return list(items)


def _encode_leaf(value: Any) -> str:
    return repr(value)


class Serializer:
    """Serializes value graphs to text using a translator registry."""

    def __init__(self, translators: Optional[TranslatorRegistry] = None):
        self.translators = translators if translators is not None else TranslatorRegistry.with_default_translators()

    def to_jsonable(self, value: Any) -> Any:
        """
        Translate a value graph into JSON-native structures.

        May raise; use ``serialize`` on error paths.
        """
        return _Walk(self.translators).translate(value)

    def serialize(self, value: Any) -> str:
        """
        Serialize a value to compact JSON text.

        Args:
            value: Any value, including self-referencing graphs

        Returns:
            JSON text, or a descriptive failure string
        """
        try:
            return json.dumps(
                self.to_jsonable(value),
                separators=(",", ":"),
                ensure_ascii=False,
                default=_encode_leaf,
            )
        except Exception as e:
            logger.debug(f"Serialization failed: {e}")
            return f"{SERIALIZATION_ERROR_PREFIX}{e}"
