from __future__ import annotations

import logging

import pytest

from kube_pager.logging import setup_logging


@pytest.fixture(autouse=True)
def _reset_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    setattr(setup_logging, "_configured", False)
    yield
    root.handlers = handlers
    root.setLevel(level)
    setattr(setup_logging, "_configured", False)
