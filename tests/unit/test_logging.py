"""
Unit tests for ledger logging utilities.
"""

import asyncio
import json
import logging

from ledger.core.logging import (
    CorrelationContext,
    HumanReadableFormatter,
    StructuredFormatter,
    configure_logging,
    log_with_context,
)


def make_record(message="hello", **extra):
    record = logging.LogRecord("ledger.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    """Tests for the log formatters."""

    def test_structured_includes_context(self):
        line = StructuredFormatter(include_timestamp=False).format(
            make_record(import_id="imp-1", batch_index=2)
        )

        entry = json.loads(line)
        assert entry == {
            "level": "INFO",
            "logger": "ledger.test",
            "message": "hello",
            "import_id": "imp-1",
            "batch_index": 2,
        }

    def test_structured_timestamp(self):
        entry = json.loads(StructuredFormatter().format(make_record()))

        assert "timestamp" in entry

    def test_human_readable_appends_context(self):
        line = HumanReadableFormatter(include_timestamp=False).format(
            make_record(import_id="imp-1", mode="merge")
        )

        assert line == "[INFO] ledger.test - hello [import_id=imp-1 mode=merge]"

    def test_human_readable_without_context(self):
        line = HumanReadableFormatter(include_timestamp=False).format(make_record())

        assert line == "[INFO] ledger.test - hello"


class TestCorrelationContext:
    """Tests for CorrelationContext."""

    def test_nested_contexts_merge_and_restore(self):
        with CorrelationContext(import_id="outer"):
            with CorrelationContext(batch_index=3):
                assert CorrelationContext.get_current() == {"import_id": "outer", "batch_index": 3}
            assert CorrelationContext.get_current() == {"import_id": "outer"}
        assert CorrelationContext.get_current() == {}

    def test_none_values_are_dropped(self):
        with CorrelationContext(import_id="x", store=None):
            assert CorrelationContext.get_current() == {"import_id": "x"}

    def test_tasks_do_not_share_context(self):
        seen = {}

        async def run(name):
            with CorrelationContext(import_id=name):
                await asyncio.sleep(0.001)
                seen[name] = CorrelationContext.get_current()["import_id"]

        async def main():
            await asyncio.gather(run("a"), run("b"))

        asyncio.run(main())

        assert seen == {"a": "a", "b": "b"}

    def test_log_with_context(self, caplog):
        logger = logging.getLogger("ledger.test_context")

        with caplog.at_level(logging.INFO, logger="ledger.test_context"):
            with CorrelationContext(import_id="imp-9"):
                log_with_context(logger, logging.INFO, "batch done", batch_index=1)

        record = caplog.records[-1]
        assert record.import_id == "imp-9"
        assert record.batch_index == 1


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_adds_single_handler(self):
        ledger_logger = logging.getLogger("ledger")
        saved = list(ledger_logger.handlers)
        ledger_logger.handlers.clear()
        try:
            configure_logging(level=logging.DEBUG, structured=True)
            configure_logging(level=logging.DEBUG, structured=True)

            assert len(ledger_logger.handlers) == 1
            assert isinstance(ledger_logger.handlers[0].formatter, StructuredFormatter)
            assert ledger_logger.level == logging.DEBUG
        finally:
            ledger_logger.handlers[:] = saved
            ledger_logger.setLevel(logging.NOTSET)
