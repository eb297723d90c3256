"""
Unit tests for audit wrappers.
"""

from unittest.mock import MagicMock

import pytest

from faultline.models import FactoryOptions
from faultline.services.audit import AuditWrapper, normalize_prefix
from faultline.services.error_registry import ErrorRegistry, TrackedError
from faultline.services.serializer import Serializer
from faultline.utils.introspection import private_methods, public_methods


class Archive:
    """Sample object to audit."""

    def __init__(self):
        self.items = []

    def add(self, item):
        if item is None:
            raise ValueError("item required")
        self.items.append(item)
        return len(self.items)

    def _compact(self):
        raise RuntimeError("compaction failed")

    def __str__(self):
        return "Archive(items)"


class Unprintable:
    """Context whose text cannot be produced."""

    def __str__(self):
        raise RuntimeError("no text")


@pytest.fixture
def registry() -> ErrorRegistry:
    """Create registry with built-in factories."""
    registry = ErrorRegistry()
    registry.register_builtin_factories()
    return registry


@pytest.fixture
def auditor(registry) -> AuditWrapper:
    """Create audit wrapper."""
    return AuditWrapper(registry, Serializer())


def raise_value_error(*args, **kwargs):
    raise ValueError("bad input")


class TestWrap:
    """Test wrapping a single callable."""

    def test_pass_through(self, auditor):
        """Test results are returned unchanged."""
        wrapped = auditor.wrap(lambda a, b: a + b, "add")

        assert wrapped(2, 3) == 5

    def test_preserves_metadata(self, auditor):
        """Test the wrapper keeps the wrapped function's name."""
        wrapped = auditor.wrap(raise_value_error, "label")

        assert wrapped.__name__ == "raise_value_error"
        assert wrapped.__wrapped__ is raise_value_error

    def test_binds_context(self, auditor):
        """Test plain functions are called bound to the context."""
        archive = Archive()

        def count(self):
            return len(self.items)

        archive.items.append("x")
        wrapped = auditor.wrap(count, "count", archive)

        assert wrapped() == 1

    def test_plain_error_is_classified(self, auditor, registry):
        """Test non-faultline errors become generic records with context."""
        wrapped = auditor.wrap(raise_value_error, "loader.load", "ctx")

        with pytest.raises(TrackedError) as exc_info:
            wrapped(1, "two", [3])

        error = exc_info.value
        assert error.record.type == "genericError"
        assert "ValueError: bad input" in error.record.raw_message
        assert "[loader.load]" in str(error)
        assert '[1,"two",[3]]' in str(error)
        assert isinstance(error.__cause__, ValueError)
        assert registry.recover(str(error)) is error.record

    def test_message_layout(self, auditor):
        """Test the context block order."""
        wrapped = auditor.wrap(raise_value_error, "job", "ctx")

        with pytest.raises(TrackedError) as exc_info:
            wrapped(1)

        lines = exc_info.value.display_text.split("\n")
        assert lines == ["ValueError: bad input", "[job]", "Arguments:", "[1]", "toString:", "ctx"]

    def test_keyword_arguments(self, auditor):
        """Test keyword arguments get their own section."""
        wrapped = auditor.wrap(raise_value_error, "job")

        with pytest.raises(TrackedError) as exc_info:
            wrapped(1, retries=2)

        message = str(exc_info.value)
        assert "Keyword arguments:\n{\"retries\":2}" in message
        assert message.endswith("toString:\nNone")

    def test_tracked_error_reused(self, auditor, registry):
        """Test an already classified error is re-raised as the same object."""
        network_error = registry.create_factory("networkError")
        original = network_error("timeout")

        def fetch():
            raise original

        wrapped = auditor.wrap(fetch, "client.fetch")

        with pytest.raises(TrackedError) as exc_info:
            wrapped()

        assert exc_info.value is original
        assert original.record.type == "networkError"
        assert "[client.fetch]" in str(original)
        assert len(registry) == 1

    def test_nested_wraps_outermost_first(self, auditor):
        """Test each layer adds one block, outermost first."""
        inner = auditor.wrap(raise_value_error, "inner")
        outer = auditor.wrap(inner, "outer")

        with pytest.raises(TrackedError) as exc_info:
            outer("x")

        record = exc_info.value.record
        assert len(record.audit_trail) == 2
        assert record.audit_trail[0].startswith("[outer]")
        assert record.audit_trail[1].startswith("[inner]")
        assert str(exc_info.value).index("[outer]") < str(exc_info.value).index("[inner]")

    def test_augmentation_failure_reraises_original(self, auditor):
        """Test the original error survives a failing augmentation."""
        original = ValueError("real failure")

        def fail(*args):
            raise original

        wrapped = auditor.wrap(fail, "label", Unprintable())

        with pytest.raises(ValueError) as exc_info:
            wrapped()

        assert exc_info.value is original
        assert str(exc_info.value) == "real failure"
        assert exc_info.value.__context__ is None

    def test_augmentation_failure_leaves_record_untouched(self, auditor, registry):
        """Test a failed augmentation does not modify a tracked error."""
        original = registry.make_error("genericError", "boom")

        def fail(*args):
            raise original

        wrapped = auditor.wrap(fail, "label", Unprintable())

        with pytest.raises(TrackedError) as exc_info:
            wrapped()

        assert exc_info.value is original
        assert original.record.audit_trail == []
        assert str(original) == original.record.display_message

    def test_base_exceptions_pass_through(self, auditor, registry):
        """Test KeyboardInterrupt and friends are not classified."""
        def interrupt():
            raise KeyboardInterrupt()

        wrapped = auditor.wrap(interrupt, "label")

        with pytest.raises(KeyboardInterrupt):
            wrapped()
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_async_function(self, auditor):
        """Test coroutine functions are wrapped with the same behaviour."""
        async def fetch(url):
            if url == "bad":
                raise ConnectionError("refused")
            return url.upper()

        wrapped = auditor.wrap(fetch, "client.fetch")

        assert await wrapped("ok") == "OK"
        with pytest.raises(TrackedError) as exc_info:
            await wrapped("bad")
        assert "ConnectionError: refused" in str(exc_info.value)
        assert '["bad"]' in str(exc_info.value)


class TestWrapAll:
    """Test wrapping the members of an object."""

    def test_wraps_all_methods_with_prefix(self, auditor):
        """Test every method is wrapped and labelled with the prefix."""
        archive = Archive()

        wrapped = auditor.wrap_all(archive, "Archive")

        assert sorted(wrapped) == ["_compact", "add"]
        assert archive.add("a") == 1
        with pytest.raises(TrackedError) as exc_info:
            archive.add(None)
        assert "[Archive.add]" in str(exc_info.value)
        assert "toString:\nArchive(items)" in str(exc_info.value)

    def test_public_selector(self, auditor):
        """Test the public selector skips private members."""
        archive = Archive()

        wrapped = auditor.wrap_all(archive, "Archive", public_methods)

        assert wrapped == ["add"]
        with pytest.raises(RuntimeError):
            archive._compact()

    def test_private_selector(self, auditor):
        """Test the private selector only wraps private members."""
        archive = Archive()

        wrapped = auditor.wrap_all(archive, "Archive", private_methods)

        assert wrapped == ["_compact"]
        with pytest.raises(TrackedError) as exc_info:
            archive._compact()
        assert "[Archive._compact]" in str(exc_info.value)

    def test_no_prefix(self, auditor):
        """Test labels are bare names without a prefix."""
        archive = Archive()
        auditor.wrap_all(archive)

        with pytest.raises(TrackedError) as exc_info:
            archive.add(None)

        assert "\n[add]\n" in str(exc_info.value)

    def test_trailing_dots_normalized(self, auditor):
        """Test a prefix ending in dots still yields one separator."""
        archive = Archive()
        auditor.wrap_all(archive, "Archive...")

        with pytest.raises(TrackedError) as exc_info:
            archive.add(None)

        assert "[Archive.add]" in str(exc_info.value)


@pytest.mark.parametrize("prefix,expected", [
    ("", ""),
    (None, ""),
    ("Archive", "Archive."),
    ("Archive.", "Archive."),
    ("Archive...", "Archive."),
    ("...", ""),
])
def test_normalize_prefix(prefix, expected):
    """Test prefix normalization."""
    assert normalize_prefix(prefix) == expected


class TestImmediateReporting:
    """Test wrapped errors flagged for immediate reporting."""

    def test_reported_after_context_added(self):
        """Test the sink sees the context block, once."""
        seen = []
        registry = ErrorRegistry(
            report_sink=lambda record: seen.append(record.message),
            default_options=FactoryOptions(report_immediately=True),
        )
        registry.register_builtin_factories()
        wrapped = AuditWrapper(registry, Serializer()).wrap(raise_value_error, "orders.place")

        with pytest.raises(TrackedError):
            wrapped("sku-1")

        assert len(seen) == 1
        assert "ValueError: bad input" in seen[0]
        assert "[orders.place]" in seen[0]
        assert '["sku-1"]' in seen[0]

    def test_tracked_errors_not_reported_again(self):
        sink = MagicMock()
        registry = ErrorRegistry(report_sink=sink)
        registry.register_builtin_factories()
        error = registry.make_error("genericError", "boom", report_immediately=True)

        def fail(*args):
            raise error

        wrapped = AuditWrapper(registry, Serializer()).wrap(fail, "orders.place")

        with pytest.raises(TrackedError):
            wrapped()

        sink.assert_called_once_with(error.record)
