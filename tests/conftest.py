"""
Pytest configuration and shared fixtures for Karauli tests.

Provides the reference datasets used across the suite and an in-memory
stand-in for the backend API.
"""

import os
import sys
import threading
from pathlib import Path

import pytest

os.environ.setdefault("MPLBACKEND", "Agg")

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# Add project root to sys.path for karauli imports
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def _square(x0, y0, size=0.01):
    return {
        "type": "Polygon",
        "coordinates": [[[x0, y0], [x0 + size, y0], [x0 + size, y0 + size], [x0, y0 + size], [x0, y0]]],
    }


VILLAGES_GEOJSON = {
    "type": "FeatureCollection",
    "features": [
        {"type": "Feature", "geometry": _square(76.50, 26.50),
         "properties": {"VCT_N_11": "Mandrayal", "SubD_N_11": "Mandrayal", "State_N": "Rajasthan"}},
        {"type": "Feature", "geometry": _square(76.60, 26.40),
         "properties": {"VCT_N_11": "Bhopur", "SubD_N_11": "Todabhim", "State_N": "Rajasthan"}},
        {"type": "Feature", "geometry": _square(76.62, 26.42),
         "properties": {"VCT_N_11": "Akbarpur", "SubD_N_11": "Todabhim", "State_N": "Rajasthan"}},
        {"type": "Feature", "geometry": _square(77.00, 26.30),
         "properties": {"VCT_N_11": "Ãrora Khurd", "SubD_N_11": "Hindaun", "State_N": "Rajasthan"}},
    ],
}


class FakeKarauliClient:
    """
    Backend stand-in. Each request can be gated on an Event so tests control
    completion order, and any request can be made to fail.
    """

    def __init__(self, area=None, rainfall=None, tiles_url="https://tiles.example/{z}/{x}/{y}.png"):
        self.area = area or {}
        self.rainfall = rainfall or {}
        self.tiles_url = tiles_url
        self.failures = {}
        self.gates = {}
        self.calls = []
        self._lock = threading.Lock()

    def gate(self, request, village=None):
        event = threading.Event()
        self.gates[(request, village)] = event
        return event

    def _serve(self, request, village, value):
        with self._lock:
            self.calls.append((request, village))
        event = self.gates.get((request, village)) or self.gates.get((request, None))
        if event is not None:
            assert event.wait(timeout=5), f"gate for {request}/{village} never opened"
        error = self.failures.get(request)
        if error is not None:
            raise error
        return value

    def villages_geojson(self):
        return VILLAGES_GEOJSON

    def area_change(self, village):
        return self._serve("area_change", village, self.area.get(village, {}))

    def rainfall_data(self, village):
        return self._serve("rainfall", village, self.rainfall.get(village, []))

    def raster_tiles_url(self):
        return self._serve("raster", None, self.tiles_url)


@pytest.fixture
def regional_series():
    """Land cover areas for two years (hectares)."""
    return {
        "2014": {"Single cropping cropland": 120, "Double cropping cropland": 40},
        "2015": {"Single cropping cropland": 100, "Double cropping cropland": 55},
    }


@pytest.fixture
def precipitation_series():
    return [["2014", 800], ["2015", 650]]


@pytest.fixture
def villages_geojson():
    return VILLAGES_GEOJSON


@pytest.fixture
def fake_client(regional_series, precipitation_series):
    return FakeKarauliClient(
        area={"Mandrayal": regional_series, "Bhopur": {"2016": {"Single cropping cropland": 7}}},
        rainfall={"Mandrayal": precipitation_series, "Bhopur": [["2016", 512.5]]},
    )
