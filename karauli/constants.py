# karauli/constants.py
"""
Karauli Land Cover Explorer Constants and Configuration
Land cover category catalog, chart styling and export column metadata
"""

# Land cover classes produced by the LULC classification, in legend order
LULC_CLASSES = {
    "Background": {"label": "Background", "color": "#b2df8a"},
    "Built-up": {"label": "Built-up", "color": "#6382ff"},
    "Water in Kharif": {"label": "Water in Kharif", "color": "#d7191c"},
    "Water in Kharif+Rabi": {"label": "Water in Kharif+Rabi", "color": "#f5ff8b"},
    "Water in Kharif+Rabi+Zaid": {"label": "Water in Kharif+Rabi+Zaid", "color": "#dcaa68"},
    "Tree/Forests": {"label": "Tree/Forests", "color": "#397d49"},
    "Barrenlands": {"label": "Barrenlands", "color": "#50c361"},
    "Single cropping cropland": {"label": "Single Cropland", "color": "#8b9dc3"},
    "Single Non-Kharif cropping cropland": {"label": "Single Non-Kharif Cropland", "color": "#dac190"},
    "Double cropping cropland": {"label": "Double Cropland", "color": "#222f5b"},
    "Triple cropping cropland": {"label": "Triple Cropland", "color": "#38c5f9"},
    "Shrub_Scrub": {"label": "Shrub/Scrub", "color": "#946b2d"},
}

SINGLE_CROPLAND = "Single cropping cropland"
DOUBLE_CROPLAND = "Double cropping cropland"
CROPLAND_CATEGORIES = (SINGLE_CROPLAND, DOUBLE_CROPLAND)

# Synthetic toggle entry for the precipitation series
PRECIPITATION = "Precipitation"
PRECIPITATION_LABEL = "Precipitation (mm)"
PRECIPITATION_COLOR = "#3498db"
PRECIPITATION_AXIS = "y1"


class CategoryCatalog:
    """
    Fixed set of known land cover categories.
    Shared by the chart composer and the toggle controls.
    """

    def __init__(self, classes=None, default_visible=CROPLAND_CATEGORIES):
        self.classes = dict(LULC_CLASSES if classes is None else classes)
        self.default_visible = tuple(default_visible)

    def __iter__(self):
        return iter(self.classes)

    def __len__(self):
        return len(self.classes)

    def __contains__(self, category):
        return category in self.classes

    @property
    def categories(self):
        return list(self.classes)

    def label(self, category: str) -> str:
        return self.classes.get(category, {}).get("label", category)

    def color(self, category: str) -> str:
        return self.classes[category]["color"]

    def default_visibility(self):
        """Visibility mapping for a freshly initialised catalog (plus Precipitation)."""
        visibility = {category: category in self.default_visible for category in self.classes}
        visibility[PRECIPITATION] = True
        return visibility

    def toggle_label(self, category: str) -> str:
        if category == PRECIPITATION:
            return PRECIPITATION
        return self.label(category)


DEFAULT_CATALOG = CategoryCatalog()


# Village boundary attribute columns (Census 2011 village layer)
VILLAGE_NAME_COL = "VCT_N_11"
SUB_DISTRICT_COL = "SubD_N_11"
STATE_COL = "State_N"

# API endpoints, relative to api_base_url
ENDPOINTS = {
    "villages": "karauli_villages_geojson/",
    "area_change": "area_change/{village}/",
    "rainfall": "rainfall_data/{village}/",
    "raster": "get_karauli_raster/",
}

DEFAULT_SETTINGS = {
    "api_base_url": "http://127.0.0.1:8000/api/",
    "timeout_seconds": 60,
    "exports_dir": "exports",
    "villages_file": None,
}

# Map defaults (Karauli district)
MAP_CENTER = (26.5, 76.5)
MAP_ZOOM = 10
VECTOR_STYLE = {
    "color": "#3388ff",
    "weight": 1,
    "opacity": 1,
    "fillColor": "#3388ff",
    "fillOpacity": 0.2,
}
SELECTED_VILLAGE_STYLE = {
    "color": "#ff7800",
    "weight": 3,
    "opacity": 1,
    "fillColor": "#ff7800",
    "fillOpacity": 0.1,
}

# Chart configuration block handed to the renderer
CHART_TITLE = "Land Cover Change Over Time"
AREA_AXIS_TITLE = "Area (ha)"
CHART_CONFIG = {
    "point_radius": 5,
    "line_width": 3,
    "tension": 0.1,
    "grid_color": "rgba(0, 0, 0, 0.1)",
    "tick_color": "black",
    "title_font_size": 18,
    "padding": 20,
    "aspect_ratio": 3,
    "responsive": True,
    "maintain_aspect_ratio": True,
}

# Export Configuration
YEAR_COLUMN = "Year"
EXPORT_COLUMNS = {
    "year": YEAR_COLUMN,
    SINGLE_CROPLAND: "Single Cropland (ha)",
    DOUBLE_CROPLAND: "Double Cropland (ha)",
    PRECIPITATION: "Precipitation (mm)",
}

EXPORT_CONFIG = {
    "csv": {
        "line_terminator": "\r\n",
        "delimiter": ",",
        "encoding": "utf-8",
        "filename_template": "{name}_{sub_district}_data.csv",
    },
    "excel": {
        "sheet_name_data": "Village_Data",
        "sheet_name_meta": "Metadata",
        "sheet_name_dict": "Data_Dictionary",
    },
}

NO_DATA_MESSAGE = "No data available to download"

# Column descriptions for data dictionary
COLUMN_DESCRIPTIONS = {
    "Year": "Year of the land cover classification",
    "Single Cropland (ha)": "Area under single cropping cropland in hectares (0 when not classified)",
    "Double Cropland (ha)": "Area under double cropping cropland in hectares (0 when not classified)",
    "Precipitation (mm)": "Annual precipitation in millimetres (0 when no record exists for the year)",
}
