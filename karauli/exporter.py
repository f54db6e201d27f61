# karauli/exporter.py
"""
Karauli Export Module
Handles export of the merged village dataset to CSV and Excel.
"""

import logging
import math
import os
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
from unidecode import unidecode

from karauli.analysis import CategoryTimeSeries, PrecipitationSeries, sorted_periods
from karauli.constants import (
    EXPORT_COLUMNS, EXPORT_CONFIG, COLUMN_DESCRIPTIONS, NO_DATA_MESSAGE,
    SINGLE_CROPLAND, DOUBLE_CROPLAND, PRECIPITATION,
)
from karauli.selection import RegionIdentity

logger = logging.getLogger(__name__)

Deliver = Callable[[bytes, str], Any]


@dataclass(frozen=True)
class ExportResult:
    ok: bool
    filename: Optional[str] = None
    delivered: Any = None
    message: str = ""


def _format_cell(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    number = float(value)
    if math.isnan(number):
        return ""
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _slug(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", unidecode(text or ""))


def save_to_directory(directory: str) -> Deliver:
    """File delivery that writes the blob under `directory` and returns the path."""
    def deliver(blob: bytes, filename: str) -> str:
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(directory, filename)
        with open(path, "wb") as f:
            f.write(blob)
        return path
    return deliver


class ExportEncoder:
    """
    Encodes the full (unfiltered) village dataset.
    Rows come from every period of the land cover series; visibility toggles never apply.
    """

    @staticmethod
    def build_rows(regional: CategoryTimeSeries,
                   precipitation: Optional[PrecipitationSeries]) -> List[Dict[str, Any]]:
        precipitation = list(precipitation or [])
        rows = []
        for period in sorted_periods(regional):
            values = regional[period] or {}
            # exact key match, first record wins
            rain = next((item[1] for item in precipitation if item[0] == period), None)
            rows.append({
                EXPORT_COLUMNS["year"]: period,
                EXPORT_COLUMNS[SINGLE_CROPLAND]: values.get(SINGLE_CROPLAND) or 0,
                EXPORT_COLUMNS[DOUBLE_CROPLAND]: values.get(DOUBLE_CROPLAND) or 0,
                EXPORT_COLUMNS[PRECIPITATION]: rain or 0,
            })
        return rows

    @staticmethod
    def build_frame(regional: CategoryTimeSeries,
                    precipitation: Optional[PrecipitationSeries]) -> pd.DataFrame:
        rows = ExportEncoder.build_rows(regional, precipitation)
        return pd.DataFrame(rows, columns=list(EXPORT_COLUMNS.values()))

    @staticmethod
    def encode(regional: CategoryTimeSeries,
               precipitation: Optional[PrecipitationSeries]) -> str:
        """CSV text: header plus one row per period, CRLF separated, no trailing newline."""
        conf = EXPORT_CONFIG["csv"]
        sep = conf["delimiter"]
        rows = ExportEncoder.build_rows(regional, precipitation)
        lines = [sep.join(EXPORT_COLUMNS.values())]
        lines.extend(sep.join(_format_cell(v) for v in row.values()) for row in rows)
        return conf["line_terminator"].join(lines)

    @staticmethod
    def filename(identity: RegionIdentity) -> str:
        return EXPORT_CONFIG["csv"]["filename_template"].format(
            name=_slug(identity.name), sub_district=_slug(identity.sub_district)
        )

    @staticmethod
    def export(identity: Optional[RegionIdentity],
               regional: Optional[CategoryTimeSeries],
               precipitation: Optional[PrecipitationSeries],
               deliver: Deliver) -> ExportResult:
        """Encode and hand the CSV to `deliver`. Reports instead of raising when there is nothing to export."""
        if not regional or identity is None:
            logger.info("Export requested without data")
            return ExportResult(ok=False, message=NO_DATA_MESSAGE)

        text = ExportEncoder.encode(regional, precipitation)
        filename = ExportEncoder.filename(identity)
        delivered = deliver(text.encode(EXPORT_CONFIG["csv"]["encoding"]), filename)
        logger.info("Exported %d rows for %s to %s", len(regional), identity.name, filename)
        return ExportResult(ok=True, filename=filename, delivered=delivered)

    @staticmethod
    def export_excel_report(output_path: str,
                            frame: pd.DataFrame,
                            metadata_dict: Dict[str, Any]) -> str:
        """
        Writes a workbook with the village data, metadata and a data dictionary.

        Sheets:
        1. Village_Data - Yearly cropland areas and precipitation
        2. Metadata - Village and export metadata
        3. Data_Dictionary - Column definitions
        """
        conf = EXPORT_CONFIG["excel"]
        meta_df = pd.DataFrame({
            'Parameter': list(metadata_dict.keys()),
            'Value': [str(v) for v in metadata_dict.values()]
        })
        dict_df = pd.DataFrame([
            {'Column': col, 'Description': COLUMN_DESCRIPTIONS.get(col, '')}
            for col in frame.columns
        ])

        with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
            frame.to_excel(writer, sheet_name=conf["sheet_name_data"], index=False)
            meta_df.to_excel(writer, sheet_name=conf["sheet_name_meta"], index=False)
            dict_df.to_excel(writer, sheet_name=conf["sheet_name_dict"], index=False)

        return output_path
