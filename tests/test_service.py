"""
Unit tests for karauli.service module.

Tests settings loading, the HTTP client and village boundary access.
"""

import io
import json

import pytest
from karauli import service as service_module
from karauli.service import KarauliAPIClient, KarauliService, load_settings
from karauli.selection import RegionIdentity


class _Response(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


@pytest.fixture
def recorded_urlopen(monkeypatch):
    """Replaces urlopen; responds from a {url: payload} table."""
    requests = []
    responses = {}

    def fake_urlopen(request, timeout=None):
        requests.append((request.full_url, timeout))
        return _Response(json.dumps(responses[request.full_url]).encode("utf-8"))

    monkeypatch.setattr(service_module.urllib.request, "urlopen", fake_urlopen)
    return requests, responses


class TestLoadSettings:

    def test_defaults_when_file_missing(self, tmp_path, monkeypatch):
        monkeypatch.delenv("KARAULI_API_BASE_URL", raising=False)
        settings = load_settings(str(tmp_path / "missing.json"))
        assert settings["api_base_url"] == "http://127.0.0.1:8000/api/"
        assert settings["exports_dir"] == "exports"

    def test_file_overrides_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("KARAULI_API_BASE_URL", raising=False)
        path = tmp_path / "karauli.json"
        path.write_text(json.dumps({"api_base_url": "https://lulc.example/api", "timeout_seconds": 5}))
        settings = load_settings(str(path))
        assert settings["api_base_url"] == "https://lulc.example/api/"
        assert settings["timeout_seconds"] == 5

    def test_environment_wins(self, tmp_path, monkeypatch):
        path = tmp_path / "karauli.json"
        path.write_text(json.dumps({"api_base_url": "https://file.example/api/"}))
        monkeypatch.setenv("KARAULI_API_BASE_URL", "https://env.example/api/")
        assert load_settings(str(path))["api_base_url"] == "https://env.example/api/"


class TestKarauliAPIClient:

    def test_area_change_url_and_payload(self, recorded_urlopen, regional_series):
        requests, responses = recorded_urlopen
        responses["http://api.test/api/area_change/Mandrayal/"] = regional_series
        client = KarauliAPIClient("http://api.test/api", timeout=7)
        assert client.area_change("Mandrayal") == regional_series
        assert requests == [("http://api.test/api/area_change/Mandrayal/", 7)]

    def test_village_name_is_quoted(self, recorded_urlopen):
        requests, responses = recorded_urlopen
        responses["http://api.test/api/rainfall_data/Ram%20Nagar%2FKhurd/"] = {"rainfall_data": []}
        KarauliAPIClient("http://api.test/api/").rainfall_data("Ram Nagar/Khurd")
        assert requests[0][0].endswith("rainfall_data/Ram%20Nagar%2FKhurd/")

    def test_rainfall_data_unwraps_payload(self, recorded_urlopen, precipitation_series):
        _, responses = recorded_urlopen
        responses["http://api.test/api/rainfall_data/X/"] = {"rainfall_data": precipitation_series}
        assert KarauliAPIClient("http://api.test/api/").rainfall_data("X") == precipitation_series

    def test_raster_tiles_url(self, recorded_urlopen):
        _, responses = recorded_urlopen
        responses["http://api.test/api/get_karauli_raster/"] = {"tiles_url": "https://t/{z}/{x}/{y}"}
        assert KarauliAPIClient("http://api.test/api/").raster_tiles_url() == "https://t/{z}/{x}/{y}"

    def test_errors_propagate(self, monkeypatch):
        def failing(request, timeout=None):
            raise OSError("connection refused")

        monkeypatch.setattr(service_module.urllib.request, "urlopen", failing)
        with pytest.raises(OSError):
            KarauliAPIClient("http://api.test/api/").area_change("X")


class TestKarauliService:

    @pytest.fixture
    def service(self, tmp_path, fake_client):
        svc = KarauliService(settings_path=str(tmp_path / "none.json"), client=fake_client)
        svc.load_villages()
        return svc

    def test_requires_loaded_layer(self, tmp_path, fake_client):
        svc = KarauliService(settings_path=str(tmp_path / "none.json"), client=fake_client)
        with pytest.raises(RuntimeError, match="No village layer loaded"):
            svc.sub_districts()

    def test_sub_districts_sorted(self, service):
        assert service.sub_districts() == ["Hindaun", "Mandrayal", "Todabhim"]

    def test_villages_sorted_within_sub_district(self, service):
        assert service.villages("Todabhim") == ["Akbarpur", "Bhopur"]

    def test_unknown_village_raises(self, service):
        with pytest.raises(ValueError, match="Village not found"):
            service.get_village_row("Todabhim", "Mandrayal")

    def test_region_identity_from_row(self, service):
        row = service.get_village_row("Todabhim", "Bhopur")
        assert service.region_identity(row) == RegionIdentity("Bhopur", "Todabhim", "Rajasthan")

    def test_load_from_local_file(self, tmp_path, fake_client, villages_geojson):
        path = tmp_path / "villages.geojson"
        path.write_text(json.dumps(villages_geojson), encoding="utf-8")
        svc = KarauliService(settings_path=str(tmp_path / "none.json"), client=fake_client)
        svc.load_villages(custom_path=str(path))
        assert len(svc.villages_gdf) == 4
        assert ("villages", None) not in fake_client.calls

    def test_missing_local_file_raises(self, tmp_path, fake_client):
        svc = KarauliService(settings_path=str(tmp_path / "none.json"), client=fake_client)
        with pytest.raises(ValueError, match="not found"):
            svc.load_villages(custom_path=str(tmp_path / "nope.geojson"))

    def test_layer_without_name_column_rejected(self, tmp_path):
        class NoNames:
            def villages_geojson(self):
                return {"type": "FeatureCollection", "features": [
                    {"type": "Feature", "properties": {"id": 1},
                     "geometry": {"type": "Point", "coordinates": [76.5, 26.5]}}]}

        svc = KarauliService(settings_path=str(tmp_path / "none.json"), client=NoNames())
        with pytest.raises(ValueError, match="missing columns"):
            svc.load_villages()
