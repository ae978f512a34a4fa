# tests/preprocessing/conftest.py
import pandas as pd
import pytest


@pytest.fixture
def small() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "y": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0],
            "x": [1.0, 2.0, 4.0, 8.0, 16.0, 32.0],
            "z": [0, 1, 0, 1, 0, 1],
            "g": ["a", "b", "c", "a", "b", "c"],
        }
    )
