import logging
from datetime import datetime, timezone

from logging_config import ContextualFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("services.temperatures", logging.INFO, __file__, 1, "Stored reading", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_known_context() -> None:
    formatter = ContextualFormatter(fmt="%(levelname)s %(message)s")
    record = _record(
        location="pool",
        window_start=datetime(2024, 5, 15, 10, tzinfo=timezone.utc),
        unrelated="ignored",
    )

    assert formatter.format(record) == (
        "INFO Stored reading | location=pool window_start=2024-05-15T10:00:00+00:00"
    )


def test_formatter_leaves_plain_messages_alone() -> None:
    formatter = ContextualFormatter(fmt="%(message)s", extra_keys=["kind"])

    assert formatter.format(_record(location="pool")) == "Stored reading"
