"""
Audit wrappers.

``AuditWrapper.wrap`` returns a function that behaves exactly like the one it
wraps until that function raises. The raised error is then classified (non
faultline errors become ``genericError`` records) and its record gains a
context block with the wrapper's label, the serialized call arguments and
the text of the bound context object before it is re-raised.

Augmentation is best effort: if building the context block fails for any
reason, the original exception is re-raised untouched.
"""

import inspect
import types
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, TypeVar

from faultline.models import BuiltinErrorType
from faultline.services.error_registry import ErrorRegistry, TrackedError
from faultline.services.serializer import Serializer
from faultline.utils.introspection import MemberPredicate, all_methods, filter_members
from faultline.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def normalize_prefix(prefix: Optional[str]) -> str:
    """Return ``prefix`` with exactly one trailing dot, or '' when empty."""
    if not prefix:
        return ""
    prefix = prefix.rstrip(".")
    return f"{prefix}." if prefix else ""


class AuditWrapper:
    """Wraps callables so raised errors carry call-site context."""

    def __init__(self, registry: ErrorRegistry, serializer: Serializer):
        self.registry = registry
        self.serializer = serializer

    def wrap(
        self,
        fn: Callable[..., T],
        label: str,
        context: Any = None,
        bind: bool = True
    ) -> Callable[..., T]:
        """
        Wrap a callable with an error-annotating layer.

        Args:
            fn: Callable to wrap
            label: Name shown in the context block
            context: Object whose text is recorded in the context block
            bind: Call a plain function with ``context`` as its first argument

        Returns:
            Wrapped callable with the same call/return behaviour
        """
        target = self._bind(fn, context) if bind else fn

        if inspect.iscoroutinefunction(fn):
            @wraps(fn)
            async def async_wrapper(*args: Any, **kwargs: Any) -> T:
                try:
                    return await target(*args, **kwargs)
                except Exception as err:
                    annotated = self._annotate_safely(err, label, context, args, kwargs)
                    if annotated is None or annotated is err:
                        raise
                    raise annotated from err

            return async_wrapper

        @wraps(fn)
        def sync_wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return target(*args, **kwargs)
            except Exception as err:
                annotated = self._annotate_safely(err, label, context, args, kwargs)
                if annotated is None or annotated is err:
                    raise
                raise annotated from err

        return sync_wrapper

    def wrap_all(self, obj: Any, prefix: str = "", selector: Optional[MemberPredicate] = None) -> List[str]:
        """
        Wrap the members of ``obj`` chosen by ``selector`` in place.

        Args:
            obj: Object, class instance or module whose members are wrapped
            prefix: Label prefix; labels become ``prefix.name``
            selector: Predicate over (name, value) pairs choosing the members
                to wrap (default: all methods)

        Returns:
            Names of the wrapped members
        """
        prefix = normalize_prefix(prefix)
        members = filter_members(obj, selector or all_methods)

        wrapped = []
        for name, fn in members.items():
            if not callable(fn):
                continue
            # Members fetched from obj are already bound
            setattr(obj, name, self.wrap(fn, prefix + name, obj, bind=False))
            wrapped.append(name)

        logger.debug(f"Audited {len(wrapped)} members", extra={"label": prefix or None, "members": wrapped})
        return wrapped

    @staticmethod
    def _bind(fn: Callable[..., T], context: Any) -> Callable[..., T]:
        if context is not None and inspect.isfunction(fn):
            return types.MethodType(fn, context)
        return fn

    def _annotate_safely(
        self,
        err: Exception,
        label: str,
        context: Any,
        args: tuple,
        kwargs: Dict[str, Any]
    ) -> Optional[TrackedError]:
        try:
            return self.annotate(err, label, context, args, kwargs)
        except Exception as augment_error:
            logger.with_context(label=label).debug(f"Could not annotate error: {augment_error}")
            return None

    def annotate(
        self,
        err: Exception,
        label: str,
        context: Any,
        args: tuple,
        kwargs: Dict[str, Any]
    ) -> TrackedError:
        """
        Classify ``err`` and add a context block to its record.

        The block is built in full before anything is changed, so a failure
        leaves an existing record as it was.
        """
        lines = [
            f"[{label}]",
            "Arguments:",
            self.serializer.serialize(list(args)),
        ]
        if kwargs:
            lines.extend(["Keyword arguments:", self.serializer.serialize(kwargs)])
        lines.extend(["toString:", str(context)])
        block = "\n".join(lines)

        report_now = False
        if isinstance(err, TrackedError):
            tracked = err
        else:
            generic = BuiltinErrorType.GENERIC.value
            report_now = self.registry.reports_immediately(generic)
            # Held back until the context block is on the record
            tracked = self.registry.make_error(
                generic,
                f"{type(err).__name__}: {err}",
                report_immediately=False
            )

        # Outer layers catch later but read first
        tracked.record.audit_trail.insert(0, block)
        tracked.refresh_message()

        if report_now:
            self.registry.dispatch(tracked.record)
        return tracked
