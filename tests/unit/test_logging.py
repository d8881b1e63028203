"""
Unit tests for the ulpcn logger namespace and verbosity switch.
"""

import logging

import pytest

from ulpcn.core.logging import get_logger, package_logger, set_verbose


@pytest.fixture
def restore_level():
    root = package_logger()
    level = root.level
    yield
    root.setLevel(level)


@pytest.mark.unit
def test_command_loggers_are_namespaced():
    assert get_logger("correct").name == "ulpcn.correct"
    assert get_logger("ulpcn.core.readcounts").name == "ulpcn.core.readcounts"


@pytest.mark.unit
def test_single_handler_on_package_logger():
    get_logger("correct")
    get_logger("build-pon")
    root = package_logger()
    assert len(root.handlers) == 1
    assert not root.propagate
    assert not get_logger("correct").handlers


@pytest.mark.unit
def test_verbose_reaches_stage_loggers(restore_level):
    stage = logging.getLogger("ulpcn.pon.model")
    package_logger().setLevel(logging.INFO)
    assert not stage.isEnabledFor(logging.DEBUG)

    set_verbose(get_logger("build-pon"), True)
    assert stage.isEnabledFor(logging.DEBUG)
    assert logging.getLogger("ulpcn.core.integer_cn").isEnabledFor(logging.DEBUG)


@pytest.mark.unit
def test_quiet_leaves_level_unchanged(restore_level):
    package_logger().setLevel(logging.INFO)
    set_verbose(get_logger("correct"), False)
    assert package_logger().level == logging.INFO
