import pytest
import logging
import sys
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.logging_setup import setup_logging
from core.config import load_config

setup_logging(logging.DEBUG)

log = logging.getLogger(__name__)


@pytest.fixture(scope="session")
def config_path():
    return Path(__file__).parent.parent / "config" / "default.yaml"


@pytest.fixture(scope="session")
def test_config(config_path):
    cfg = load_config(str(config_path))
    log.info("Test config loaded from: %s", config_path)
    return cfg


@pytest.fixture
def logger():
    return logging.getLogger("test")


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def rgba_image(rng):
    def _create(width: int = 64, height: int = 48, alpha: int = 255) -> np.ndarray:
        pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
        pixels[..., 3] = alpha
        return pixels

    return _create
