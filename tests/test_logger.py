from __future__ import annotations

import logging

from academy_booking.utils.logger import (
    HANDLER_NAME,
    PACKAGE_LOGGER_NAME,
    configure_logging,
    get_logger,
)


def _own_handlers() -> list[logging.Handler]:
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    return [handler for handler in package_logger.handlers if handler.get_name() == HANDLER_NAME]


def test_module_loggers_share_package_hierarchy() -> None:
    assert get_logger("academy_booking.services.scoring_service").name == (
        "academy_booking.services.scoring_service"
    )
    assert get_logger("app").name == "academy_booking.app"


def test_repeated_setup_attaches_one_stdout_handler() -> None:
    get_logger("first")
    get_logger("second")
    configure_logging("warning")

    handlers = _own_handlers()
    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.StreamHandler)


def test_explicit_level_applies_after_first_setup() -> None:
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)

    configure_logging("debug")
    assert package_logger.level == logging.DEBUG
    configure_logging("info")
    assert package_logger.level == logging.INFO
