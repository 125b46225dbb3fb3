import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from models import PointOfInterest


@pytest.fixture
def make_poi():
    counter = {"n": 0}

    def _make(**kwargs) -> PointOfInterest:
        counter["n"] += 1
        data = {
            "id": f"poi-{counter['n']}",
            "entity_type": "village",
            "title": f"Place {counter['n']}",
            "lat": 30.2,
            "lng": 79.2,
        }
        data.update(kwargs)
        return PointOfInterest(**data)

    return _make
