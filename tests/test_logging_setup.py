from __future__ import annotations

import logging

import pytest

from affiliate_posts.domain.models import Settings
from affiliate_posts.errors import ValidationError
from affiliate_posts.logging import ROOT_LOGGER_NAME, get_logger, set_level


def test_module_loggers_share_the_package_logger() -> None:
    log = get_logger("store-db")
    root = logging.getLogger(ROOT_LOGGER_NAME)

    assert log.name == "affiliate_posts.store-db"
    assert log.parent is root
    assert len(root.handlers) >= 1
    get_logger("api")
    assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == len(root.handlers)


def test_set_level_applies_to_every_module_logger() -> None:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    previous = root.level
    try:
        assert set_level("debug") == logging.DEBUG
        assert get_logger("generation-client").isEnabledFor(logging.DEBUG)
        assert set_level("nonsense") == logging.INFO
        assert not get_logger("generation-client").isEnabledFor(logging.DEBUG)
    finally:
        root.setLevel(previous)


def test_settings_reject_unknown_tone() -> None:
    with pytest.raises(ValidationError):
        Settings().updated({"tone": "pirate"})
    assert Settings().updated({"tone": " Witty "}).tone == "witty"
    assert Settings(tone="casual").updated({"tone": ""}).tone == ""
