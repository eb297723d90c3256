"""
Member selection helpers used by the audit wrapper.

A name starting with an underscore is private. Dunder names are never
selected.
"""

import inspect
import re
from typing import Any, Callable, Dict

PRIVATE_NAME = re.compile(r"^_+")
DUNDER_NAME = re.compile(r"^__.*__$")

MemberPredicate = Callable[[str, Any], bool]


def filter_members(obj: Any, predicate: MemberPredicate) -> Dict[str, Any]:
    """
    Return the name/value pairs of ``obj`` accepted by ``predicate``.

    Attributes that raise on access are skipped.
    """
    selected: Dict[str, Any] = {}
    for name in dir(obj):
        if DUNDER_NAME.match(name):
            continue
        try:
            value = getattr(obj, name)
        except Exception:
            continue
        if predicate(name, value):
            selected[name] = value
    return selected


def _is_method(value: Any) -> bool:
    return callable(value) and not inspect.isclass(value)


def _is_private(name: str) -> bool:
    return bool(PRIVATE_NAME.match(name))


# Member predicates

def public_methods(name: str, value: Any) -> bool:
    return _is_method(value) and not _is_private(name)


def private_methods(name: str, value: Any) -> bool:
    return _is_method(value) and _is_private(name)


def all_methods(name: str, value: Any) -> bool:
    return _is_method(value)


def public_properties(name: str, value: Any) -> bool:
    return not _is_method(value) and not _is_private(name)


def private_properties(name: str, value: Any) -> bool:
    return not _is_method(value) and _is_private(name)


def all_properties(name: str, value: Any) -> bool:
    return not _is_method(value)


def get_public_methods(obj: Any) -> Dict[str, Any]:
    return filter_members(obj, public_methods)


def get_private_methods(obj: Any) -> Dict[str, Any]:
    return filter_members(obj, private_methods)


def get_all_methods(obj: Any) -> Dict[str, Any]:
    return filter_members(obj, all_methods)


def get_public_properties(obj: Any) -> Dict[str, Any]:
    return filter_members(obj, public_properties)


def get_private_properties(obj: Any) -> Dict[str, Any]:
    return filter_members(obj, private_properties)


def get_all_properties(obj: Any) -> Dict[str, Any]:
    return filter_members(obj, all_properties)
