import logging
import os
import sys
from pathlib import Path

import pytest

# Ensure the root modules are importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import config  # noqa: E402
from parser_837 import SAMPLE_837  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Fresh global config per test, with no config files or EDI_* variables leaking in."""
    for name in list(os.environ):
        if name.startswith("EDI_"):
            monkeypatch.delenv(name)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    config.reset_config()
    yield
    config.reset_config()
    # main() reconfigures the root logger; put pytest's handlers back
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
    for handler in saved_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(saved_level)


@pytest.fixture
def sample_837():
    return SAMPLE_837
