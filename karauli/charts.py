# karauli/charts.py
"""
Chart description for the land cover / precipitation time series,
plus the matplotlib renderer used by the Gradio view.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple

import matplotlib.pyplot as plt

from karauli.analysis import ProjectedSeries
from karauli.constants import (
    CHART_CONFIG, CHART_TITLE, AREA_AXIS_TITLE, PRECIPITATION_LABEL, PRECIPITATION_AXIS,
)


@dataclass(frozen=True)
class ChartDataset:
    label: str
    data: Tuple
    border_color: str
    y_axis_id: Optional[str] = None
    fill: bool = False
    tension: float = CHART_CONFIG["tension"]

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "label": self.label,
            "data": list(self.data),
            "fill": self.fill,
            "borderColor": self.border_color,
            "tension": self.tension,
        }
        if self.y_axis_id:
            d["yAxisID"] = self.y_axis_id
        return d


@dataclass(frozen=True)
class ChartDescription:
    labels: Tuple = ()
    datasets: Tuple[ChartDataset, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.datasets

    def to_dict(self) -> Dict[str, Any]:
        return {
            "labels": list(self.labels),
            "datasets": [ds.to_dict() for ds in self.datasets],
        }


class ChartComposer:
    """Turns projected series into a two-axis chart description."""

    @staticmethod
    def compose(labels: Sequence, projected: Sequence[ProjectedSeries]) -> ChartDescription:
        labels = tuple(labels)
        datasets = []
        for series in projected:
            if len(series.values) != len(labels):
                raise ValueError(
                    f"Series '{series.key}' has {len(series.values)} values for {len(labels)} labels"
                )
            datasets.append(ChartDataset(
                label=series.label,
                data=tuple(series.values),
                border_color=series.color,
                y_axis_id=series.axis,
            ))
        return ChartDescription(labels=labels, datasets=tuple(datasets))

    @staticmethod
    def chart_options() -> Dict[str, Any]:
        """Configuration block for the renderer: axes, title, sizing, responsiveness."""
        grid = {"color": CHART_CONFIG["grid_color"]}
        ticks = {"color": CHART_CONFIG["tick_color"]}
        return {
            "scales": {
                "y": {
                    "beginAtZero": True,
                    "ticks": ticks,
                    "grid": grid,
                    "title": {"display": True, "text": AREA_AXIS_TITLE},
                },
                PRECIPITATION_AXIS: {
                    "type": "linear",
                    "display": True,
                    "position": "right",
                    # keep the secondary grid off the plot area
                    "grid": {"drawOnChartArea": False},
                    "title": {"display": True, "text": PRECIPITATION_LABEL},
                },
                "x": {"ticks": ticks, "grid": grid},
            },
            "plugins": {
                "legend": {"labels": {"color": "black"}},
                "title": {
                    "display": True,
                    "text": CHART_TITLE,
                    "color": "black",
                    "font": {"size": CHART_CONFIG["title_font_size"]},
                },
            },
            "layout": {"padding": {side: CHART_CONFIG["padding"] for side in ("left", "right", "top", "bottom")}},
            "responsive": CHART_CONFIG["responsive"],
            "maintainAspectRatio": CHART_CONFIG["maintain_aspect_ratio"],
            "aspectRatio": CHART_CONFIG["aspect_ratio"],
            "elements": {
                "point": {"radius": CHART_CONFIG["point_radius"]},
                "line": {"borderWidth": CHART_CONFIG["line_width"]},
            },
        }


def render_chart(description: ChartDescription, options: Optional[Dict[str, Any]] = None):
    """Render a ChartDescription as a matplotlib figure with a right-hand precipitation axis."""
    options = options or ChartComposer.chart_options()
    scales = options["scales"]
    elements = options["elements"]
    marker_size = elements["point"]["radius"] * 1.2
    line_width = elements["line"]["borderWidth"]

    fig, ax = plt.subplots(figsize=(9, 3.6))
    fig.patch.set_facecolor("white")
    x = list(range(len(description.labels)))

    handles = []
    ax_right = None
    for ds in description.datasets:
        target = ax
        if ds.y_axis_id == PRECIPITATION_AXIS:
            if ax_right is None:
                ax_right = ax.twinx()
                ax_right.grid(False)
                ax_right.set_ylabel(scales[PRECIPITATION_AXIS]["title"]["text"])
            target = ax_right
        line, = target.plot(x, list(ds.data), color=ds.border_color, linewidth=line_width,
                            marker="o", markersize=marker_size, label=ds.label)
        handles.append(line)

    if scales["y"].get("beginAtZero"):
        ax.set_ylim(bottom=0)
    ax.set_ylabel(scales["y"]["title"]["text"])
    ax.grid(True, color="#e5e5e5", linewidth=0.8)
    ax.set_xticks(x)
    ax.set_xticklabels([str(label) for label in description.labels])
    ax.set_title(options["plugins"]["title"]["text"], fontsize=12, fontweight="semibold")

    if handles:
        ax.legend(handles, [h.get_label() for h in handles], loc="upper center",
                  bbox_to_anchor=(0.5, -0.12), ncol=min(4, len(handles)), frameon=False)
    fig.tight_layout()
    return fig
