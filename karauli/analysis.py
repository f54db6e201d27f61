# karauli/analysis.py
"""
Alignment of the land cover and precipitation series onto one period axis,
and projection of the aligned data through the visibility toggles.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from karauli.constants import (
    CategoryCatalog, DEFAULT_CATALOG, PRECIPITATION, PRECIPITATION_LABEL,
    PRECIPITATION_COLOR, PRECIPITATION_AXIS,
)

CategoryTimeSeries = Mapping[Any, Mapping[str, float]]
PrecipitationSeries = Sequence[Sequence[Any]]


def period_key(period: Any) -> str:
    """Canonical form of a period so that 2014, 2014.0 and "2014" compare equal."""
    text = str(period).strip()
    try:
        number = float(text)
    except ValueError:
        return text
    if number.is_integer():
        return str(int(number))
    return str(number)


def period_sort_key(period: Any) -> Tuple:
    text = str(period).strip()
    try:
        return (0, float(text), text)
    except ValueError:
        return (1, 0.0, text)


def sorted_periods(regional: Optional[CategoryTimeSeries]) -> List[Any]:
    """Regional periods in ascending chronological order."""
    if not regional:
        return []
    return sorted(regional.keys(), key=period_sort_key)


@dataclass(frozen=True)
class MergedRecord:
    period: Any
    values: Mapping[str, float] = field(default_factory=dict)
    precipitation: Optional[float] = None

    def value(self, category: str) -> float:
        v = self.values.get(category)
        return 0 if v is None else v


@dataclass(frozen=True)
class MergedSeries:
    labels: Tuple
    records: Tuple[MergedRecord, ...]
    # Categories reported anywhere in the regional series, not only on the label axis
    categories: frozenset = frozenset()
    has_precipitation: bool = False


class SeriesMerger:
    """
    Aligns the land cover series and the precipitation series.
    The label axis is the precipitation axis when there is one, otherwise the
    land cover axis. Periods outside the chosen axis are not represented.
    """

    @staticmethod
    def merge(regional: Optional[CategoryTimeSeries],
              precipitation: Optional[PrecipitationSeries]) -> MergedSeries:
        regional = regional or {}
        precipitation = list(precipitation or [])

        regional_index = {period_key(p): values for p, values in regional.items()}
        rain_index: Dict[str, float] = {}
        for item in precipitation:
            # first occurrence wins for duplicated years
            rain_index.setdefault(period_key(item[0]), item[1])

        if precipitation:
            labels = [item[0] for item in precipitation]
        else:
            labels = sorted_periods(regional)

        records = []
        for label in labels:
            key = period_key(label)
            records.append(MergedRecord(
                period=label,
                values=dict(regional_index.get(key) or {}),
                precipitation=rain_index.get(key),
            ))

        categories = frozenset(c for values in regional.values() for c in (values or {}))
        return MergedSeries(
            labels=tuple(labels),
            records=tuple(records),
            categories=categories,
            has_precipitation=bool(precipitation),
        )


@dataclass(frozen=True)
class ProjectedSeries:
    key: str
    label: str
    color: str
    values: Tuple
    axis: Optional[str] = None


class VisibilityProjector:
    """Selects the series to draw from the merge, driven by the visibility toggles."""

    @staticmethod
    def toggle(visibility: Mapping[str, bool], category: str) -> Dict[str, bool]:
        if category not in visibility:
            raise ValueError(f"Unknown series '{category}'")
        updated = dict(visibility)
        updated[category] = not updated[category]
        return updated

    @staticmethod
    def project(merged: MergedSeries, visibility: Mapping[str, bool],
                catalog: CategoryCatalog = DEFAULT_CATALOG) -> List[ProjectedSeries]:
        projected = []
        for category in catalog:
            if not visibility.get(category, False) or category not in merged.categories:
                continue
            projected.append(ProjectedSeries(
                key=category,
                label=catalog.label(category),
                color=catalog.color(category),
                values=tuple(rec.value(category) for rec in merged.records),
            ))

        if visibility.get(PRECIPITATION, False) and merged.has_precipitation:
            projected.append(ProjectedSeries(
                key=PRECIPITATION,
                label=PRECIPITATION_LABEL,
                color=PRECIPITATION_COLOR,
                values=tuple(0 if rec.precipitation is None else rec.precipitation for rec in merged.records),
                axis=PRECIPITATION_AXIS,
            ))
        return projected
