"""Shared fixtures: a copy of the sample UI project and a loaded engine."""

import shutil
from pathlib import Path

import pytest

FIXTURES = Path(__file__).parent / "fixtures"
PROJECT = FIXTURES / "project"


@pytest.fixture
def project_dir(tmp_path):
    dest = tmp_path / "project"
    shutil.copytree(PROJECT, dest)
    return dest


@pytest.fixture
def engine(project_dir):
    from blockgraph.engine import BlockEngine

    eng = BlockEngine(project_dir)
    eng.load_project()
    return eng
