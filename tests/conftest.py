import logging

import pytest

from grapher.config import GraphConfig


@pytest.fixture
def output_dir(tmp_path):
    return str(tmp_path / "generated")


@pytest.fixture
def config(output_dir):
    return GraphConfig(output_dir=output_dir)


@pytest.fixture(autouse=True)
def reset_grapher_logger():
    # setup_logging binds handlers to the stdout captured for one test only
    yield
    logging.getLogger("grapher").handlers.clear()
