import os
import sys

import pytest

# Asegura que el paquete plant_gateway sea importable desde la raíz del repo durante los tests
ROOT_DIR = os.path.dirname(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

SAMPLE_LINE = "STATE;soil=395;temp=22.9;hum=19.0;mq2=85;rain=1020;bio=513"
SAMPLE_FRAME = (
    '{"line":"STATE;soil=395;temp=22.9;hum=19.0;mq2=85;rain=1020;bio=513",'
    '"json":{"soil":395,"temp":22.9,"hum":19.0,"mq2":85,"rain":1020,"bio":513}}'
)


@pytest.fixture
def sample_frame() -> str:
    return SAMPLE_FRAME


@pytest.fixture
def sample_line() -> str:
    return SAMPLE_LINE
