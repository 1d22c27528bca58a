from pathlib import Path
from typing import Dict

import pytest

from jinx import DictLoader, Environment, FileSystemLoader

from tests.infrastructure.file_utils import write_templates


@pytest.fixture
def env() -> Environment:
    """Plain environment without a loader."""
    return Environment()


@pytest.fixture
def dict_env():
    """Factory: environment over an in-memory mapping of templates."""
    def make(templates: Dict[str, str], **options) -> Environment:
        return Environment(loader=DictLoader(templates), **options)
    return make


@pytest.fixture
def fs_env(tmp_path: Path):
    """Factory: environment over templates written to a temporary directory."""
    def make(templates: Dict[str, str], **options) -> Environment:
        write_templates(tmp_path, templates)
        return Environment(loader=FileSystemLoader(tmp_path), **options)
    return make
