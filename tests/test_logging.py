import logging

from shared.logging.logging_setup import ColoredFormatter, ColorLogger, TokenRedactFilter


def make_record(msg, *args, level=logging.INFO):
    return logging.LogRecord("rag_gateway", level, __file__, 1, msg, args, None)


def test_bearer_tokens_are_redacted_from_message_and_args():
    record = make_record("forwarding %s to %s", "Bearer eyJhbGciOi.payload.sig", "supabase")
    assert TokenRedactFilter().filter(record) is True
    assert "eyJhbGciOi" not in record.getMessage()
    assert "Bearer ***" in record.getMessage()


def test_messages_without_tokens_are_untouched():
    record = make_record("user=%s", "abc")
    TokenRedactFilter().filter(record)
    assert record.msg == "user=%s"
    assert record.args == ("abc",)


def test_colored_formatter_prefixes_and_colors():
    formatter = ColoredFormatter("UTC", "%(levelname)s %(message)s")
    warning = make_record("slow %s", "redis", level=logging.WARNING)
    warning.color = "yellow"
    line = formatter.format(warning)
    assert line.startswith("\033[33m")
    assert "⚠️ slow redis" in line


def test_color_logger_passes_color_as_extra(caplog):
    logger = ColorLogger(logging.getLogger("rag_gateway.test_logging"))
    with caplog.at_level(logging.INFO, logger="rag_gateway.test_logging"):
        logger.info("connected to %s", "redis", color="green")
    [record] = caplog.records
    assert record.getMessage() == "connected to redis"
    assert record.color == "green"
    assert record.funcName == "test_color_logger_passes_color_as_extra"
