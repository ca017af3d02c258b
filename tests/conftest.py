import pytest

import modelkit


@pytest.fixture
def engine() -> modelkit.Engine:
    return modelkit.create_engine()


@pytest.fixture
def strict_engine() -> modelkit.Engine:
    """Engine that neither casts strings nor parses numbers."""
    return modelkit.create_engine(cast_string=False, parse_numbers=False)
