import logging

import pytest

from sma_chg_log.logconfig import TRACE, init_logging, parse_log_level


@pytest.fixture
def package_logger():
    logger = logging.getLogger("sma_chg_log")
    old_handlers = list(logger.handlers)
    old_level = logger.level
    yield logger
    logger.handlers[:] = old_handlers
    logger.setLevel(old_level)


@pytest.mark.parametrize("name", ["trace", "TRACE", "Trace"])
def test_parse_trace(name):
    assert parse_log_level(name) == TRACE


@pytest.mark.parametrize(
    "name, expected",
    [
        ("debug", logging.DEBUG),
        ("INFO", logging.INFO),
        ("warn", logging.WARNING),
        ("Error", logging.ERROR),
    ],
)
def test_parse_named_levels(name, expected):
    assert parse_log_level(name) == expected


def test_parse_level_with_offset():
    assert parse_log_level("info+2") == logging.INFO + 2
    assert parse_log_level("error-1") == logging.ERROR - 1


@pytest.mark.parametrize("name", ["", "bogus", "warning", "info+"])
def test_parse_invalid_level(name):
    with pytest.raises(ValueError):
        parse_log_level(name)


def test_trace_is_below_debug_and_named():
    level = parse_log_level("trace")
    assert level < parse_log_level("debug")
    assert logging.getLevelName(level) == "TRACE"


def test_init_logging_sets_level(package_logger):
    assert init_logging("debug") == logging.DEBUG
    assert package_logger.level == logging.DEBUG


def test_init_logging_twice_keeps_one_handler(package_logger):
    assert init_logging("info") == logging.INFO
    assert init_logging("trace") == TRACE
    names = [h.get_name() for h in package_logger.handlers]
    assert names.count("sma_chg_log.stderr") == 1
    assert package_logger.level == TRACE


def test_init_logging_invalid_warns(package_logger, capsys):
    assert init_logging("bogus") == logging.INFO
    err = capsys.readouterr().err
    assert "invalid log level" in err
    assert "level=WARNING" in err