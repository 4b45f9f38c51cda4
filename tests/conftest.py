import numpy as np
import pytest


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def small_config():
    # small glyphs keep the CLI tests quick
    return {
        "text": {"font_scale": 1.0, "thickness": 3, "padding": 10},
    }
