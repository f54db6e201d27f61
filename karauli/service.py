# karauli/service.py

import json
import logging
import os
import urllib.parse
import urllib.request
import pandas as pd
import geopandas as gpd
from typing import Any, Dict, List, Optional
from unidecode import unidecode
from karauli.constants import (
    DEFAULT_SETTINGS, ENDPOINTS, VILLAGE_NAME_COL, SUB_DISTRICT_COL, STATE_COL,
)
from karauli.selection import RegionIdentity

logger = logging.getLogger(__name__)


def load_settings(settings_path: str = "karauli.json") -> Dict[str, Any]:
    """
    Reads the settings file if it exists and layers it over DEFAULT_SETTINGS.
    KARAULI_API_BASE_URL in the environment wins over both.
    """
    settings = dict(DEFAULT_SETTINGS)
    if settings_path and os.path.exists(settings_path):
        with open(settings_path, 'r', encoding='utf-8') as f:
            settings.update(json.load(f))

    env_url = os.environ.get("KARAULI_API_BASE_URL", "").strip()
    if env_url:
        settings["api_base_url"] = env_url
    if not settings["api_base_url"].endswith("/"):
        settings["api_base_url"] += "/"
    return settings


class KarauliAPIClient:
    """
    Thin JSON-over-HTTP client for the Karauli backend.
    Errors propagate to the caller; the fetch coordinator decides what to absorb.
    """

    def __init__(self, base_url: str, timeout: float = 60):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout

    def get(self, path: str) -> Any:
        url = urllib.parse.urljoin(self.base_url, path)
        logger.debug("GET %s", url)
        request = urllib.request.Request(url, headers={"Accept": "application/json"})
        with urllib.request.urlopen(request, timeout=self.timeout) as resp:
            return json.loads(resp.read().decode("utf-8"))

    @staticmethod
    def _village_path(template: str, village: str) -> str:
        return template.format(village=urllib.parse.quote(village, safe=""))

    def villages_geojson(self) -> Dict[str, Any]:
        return self.get(ENDPOINTS["villages"])

    def area_change(self, village: str) -> Dict[str, Dict[str, float]]:
        """Land cover area time series: {year: {category: hectares}}."""
        return self.get(self._village_path(ENDPOINTS["area_change"], village))

    def rainfall_data(self, village: str) -> List[List[Any]]:
        """Precipitation series: [[year, mm], ...]."""
        payload = self.get(self._village_path(ENDPOINTS["rainfall"], village))
        return payload["rainfall_data"]

    def raster_tiles_url(self) -> str:
        """
        XYZ tile URL of the classified raster overlay.
        The backend serves one raster for the whole district, so this is not keyed by village.
        """
        payload = self.get(ENDPOINTS["raster"])
        return payload["tiles_url"]


class KarauliService:
    """
    Core service for village boundaries and backend access.
    Handles loading of the village layer from a local file or the API.
    """

    def __init__(self, settings_path: str = "karauli.json", client: Optional[KarauliAPIClient] = None):
        self.settings = load_settings(settings_path)
        self.client = client or KarauliAPIClient(
            self.settings["api_base_url"], timeout=self.settings["timeout_seconds"]
        )
        self.villages_gdf: Optional[gpd.GeoDataFrame] = None

    def load_villages(self, custom_path: str = None) -> None:
        """
        Loads the village boundary layer into memory.
        A local file (custom_path or settings 'villages_file') takes precedence over the API.
        """
        path = custom_path or self.settings.get("villages_file")
        if path:
            if not os.path.exists(path):
                raise ValueError(f"Village boundary file not found: {path}")
            gdf = gpd.read_file(path)
        else:
            geojson = self.client.villages_geojson()
            gdf = gpd.GeoDataFrame.from_features(geojson.get("features", []), crs="EPSG:4326")

        if gdf.crs is not None and gdf.crs != "EPSG:4326":
            gdf = gdf.to_crs("EPSG:4326")

        missing = [c for c in (VILLAGE_NAME_COL, SUB_DISTRICT_COL) if c not in gdf.columns]
        if missing:
            raise ValueError(f"Village layer is missing columns {missing}. Available: {list(gdf.columns)}")

        self.villages_gdf = gdf
        logger.info("Loaded %d village boundaries", len(gdf))

    def _ensure_loaded(self) -> None:
        if self.villages_gdf is None:
            raise RuntimeError("No village layer loaded. Call load_villages() first.")

    @staticmethod
    def _norm(s: Optional[str]) -> str:
        return unidecode("" if s is None or (isinstance(s, float) and pd.isna(s)) else str(s)).strip()

    def sub_districts(self) -> List[str]:
        self._ensure_loaded()
        vals = self.villages_gdf[SUB_DISTRICT_COL].dropna().astype(str).unique().tolist()
        return sorted(vals, key=lambda x: self._norm(x).lower())

    def villages(self, sub_district: str) -> List[str]:
        self._ensure_loaded()
        sub = self.villages_gdf[self.villages_gdf[SUB_DISTRICT_COL] == sub_district]
        vals = sub[VILLAGE_NAME_COL].dropna().astype(str).unique().tolist()
        return sorted(vals, key=lambda x: self._norm(x).lower())

    def get_village_row(self, sub_district: str, village: str) -> gpd.GeoDataFrame:
        self._ensure_loaded()
        gdf = self.villages_gdf
        row = gdf[(gdf[SUB_DISTRICT_COL] == sub_district) & (gdf[VILLAGE_NAME_COL] == village)]
        if row.empty:
            raise ValueError(f"Village not found for {sub_district}/{village}")
        return row

    def region_identity(self, row: gpd.GeoDataFrame) -> RegionIdentity:
        """Identity of the first feature in a village row."""
        attributes = pd.DataFrame(row.drop(columns=row.geometry.name)).iloc[0].to_dict()
        return RegionIdentity.from_attributes(attributes)
