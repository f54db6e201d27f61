"""
Unit tests for karauli.exporter module.

Tests CSV encoding, filename derivation and the Excel report.
"""

import pandas as pd
import pytest
from karauli.exporter import ExportEncoder, save_to_directory
from karauli.selection import RegionIdentity

HEADER = "Year,Single Cropland (ha),Double Cropland (ha),Precipitation (mm)"


class TestEncode:

    def test_scenario_c_missing_year_defaults_to_zero(self, regional_series):
        text = ExportEncoder.encode(regional_series, [["2014", 800]])
        assert text == f"{HEADER}\r\n2014,120,40,800\r\n2015,100,55,0"

    def test_one_row_per_regional_period(self):
        regional = {str(y): {"Single cropping cropland": y - 2000} for y in range(2005, 2020)}
        lines = ExportEncoder.encode(regional, []).split("\r\n")
        assert lines[0] == HEADER
        assert len(lines) - 1 == len(regional)

    def test_rows_not_limited_to_precipitation_axis(self, regional_series):
        # the chart axis would be 2019 only; the export still lists every land cover year
        rows = ExportEncoder.build_rows(regional_series, [["2019", 700]])
        assert [r["Year"] for r in rows] == ["2014", "2015"]
        assert [r["Precipitation (mm)"] for r in rows] == [0, 0]

    def test_rows_are_chronological(self):
        regional = {"2016": {}, "2010": {}, "2013": {}}
        rows = ExportEncoder.build_rows(regional, None)
        assert [r["Year"] for r in rows] == ["2010", "2013", "2016"]

    def test_missing_cropland_categories_default_to_zero(self):
        text = ExportEncoder.encode({"2014": {"Built-up": 3}}, [["2014", 512.5]])
        assert text.split("\r\n")[1] == "2014,0,0,512.5"

    def test_precipitation_match_is_exact_on_period_key(self, regional_series):
        rows = ExportEncoder.build_rows(regional_series, [[2014, 800]])
        assert rows[0]["Precipitation (mm)"] == 0

    def test_float_areas_keep_fraction(self):
        text = ExportEncoder.encode({"2014": {"Single cropping cropland": 12.25, "Double cropping cropland": 3.0}}, [])
        assert text.split("\r\n")[1] == "2014,12.25,3,0"

    def test_no_trailing_line_break(self, regional_series, precipitation_series):
        assert not ExportEncoder.encode(regional_series, precipitation_series).endswith("\r\n")


class TestFilename:

    @pytest.mark.parametrize("name, sub_district, expected", [
        ("Mandrayal", "Mandrayal", "Mandrayal_Mandrayal_data.csv"),
        ("Ram  Nagar", "Todabhim", "Ram_Nagar_Todabhim_data.csv"),
        ("Kherli (Gujar)", "Sapotra", "Kherli_Gujar__Sapotra_data.csv"),
        ("Ãrora Khurd", "Hindaun", "Arora_Khurd_Hindaun_data.csv"),
    ])
    def test_non_alphanumeric_runs_become_underscores(self, name, sub_district, expected):
        assert ExportEncoder.filename(RegionIdentity(name, sub_district)) == expected


class TestExport:

    def test_delivers_bytes_and_filename(self, regional_series, precipitation_series):
        delivered = []
        result = ExportEncoder.export(
            RegionIdentity("Mandrayal", "Mandrayal"), regional_series, precipitation_series,
            lambda blob, filename: delivered.append((blob, filename)) or "ok",
        )
        assert result.ok
        assert result.delivered == "ok"
        blob, filename = delivered[0]
        assert filename == "Mandrayal_Mandrayal_data.csv"
        assert blob.decode("utf-8").startswith(HEADER + "\r\n2014,120,40,800")

    @pytest.mark.parametrize("regional", [None, {}])
    def test_no_data_is_reported_not_raised(self, regional):
        delivered = []
        result = ExportEncoder.export(RegionIdentity("X"), regional, [], lambda *a: delivered.append(a))
        assert not result.ok
        assert result.message == "No data available to download"
        assert delivered == []

    def test_no_selection_is_reported(self, regional_series):
        result = ExportEncoder.export(None, regional_series, [], lambda *a: None)
        assert not result.ok

    def test_save_to_directory(self, tmp_path, regional_series, precipitation_series):
        result = ExportEncoder.export(
            RegionIdentity("Bhopur", "Todabhim"), regional_series, precipitation_series,
            save_to_directory(str(tmp_path / "exports")),
        )
        path = tmp_path / "exports" / "Bhopur_Todabhim_data.csv"
        assert result.delivered == str(path)
        assert path.read_bytes().count(b"\r\n") == 2


class TestExcelReport:

    def test_writes_all_sheets(self, tmp_path, regional_series, precipitation_series):
        frame = ExportEncoder.build_frame(regional_series, precipitation_series)
        out = ExportEncoder.export_excel_report(str(tmp_path / "report.xlsx"), frame, {"Village": "Mandrayal"})

        sheets = pd.read_excel(out, sheet_name=None)
        assert set(sheets) == {"Village_Data", "Metadata", "Data_Dictionary"}
        assert len(sheets["Village_Data"]) == 2
        assert sheets["Village_Data"]["Precipitation (mm)"].tolist() == [800, 650]
        assert sheets["Metadata"]["Value"].tolist() == ["Mandrayal"]
        assert len(sheets["Data_Dictionary"]) == 4
