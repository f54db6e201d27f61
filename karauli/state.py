# karauli/state.py
"""
View state and its transitions.

Each transition is a pure function of (previous state, event) returning a new
ViewState. ViewStore is the per-session holder that applies transitions
atomically and owns the SelectionController.
"""

import threading
from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from karauli.analysis import SeriesMerger, VisibilityProjector, MergedSeries
from karauli.charts import ChartComposer, ChartDescription
from karauli.constants import CategoryCatalog, DEFAULT_CATALOG
from karauli.fetch import FetchBundle
from karauli.selection import RegionIdentity, SelectionController


@dataclass(frozen=True)
class ViewState:
    visibility: Dict[str, bool]
    identity: Optional[RegionIdentity] = None
    token: int = 0
    loading: bool = False
    regional_series: Optional[dict] = None
    precipitation_series: Optional[list] = None
    overlay_url: Optional[str] = None
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return self.regional_series is not None and self.precipitation_series is not None

    @property
    def unavailable(self) -> bool:
        """Fetch settled but at least one series is missing."""
        return self.identity is not None and not self.loading and not self.has_data

    @property
    def export_enabled(self) -> bool:
        return not self.loading and self.has_data


def initial_state(catalog: CategoryCatalog = DEFAULT_CATALOG) -> ViewState:
    return ViewState(visibility=catalog.default_visibility())


def on_select(state: ViewState, identity: RegionIdentity, token: int) -> ViewState:
    """New selection: datasets of the previous village are dropped, toggles are kept."""
    return replace(
        state,
        identity=identity,
        token=token,
        loading=True,
        regional_series=None,
        precipitation_series=None,
        overlay_url=None,
        errors={},
    )


def on_clear(state: ViewState, token: int) -> ViewState:
    return replace(
        state,
        identity=None,
        token=token,
        loading=False,
        regional_series=None,
        precipitation_series=None,
        overlay_url=None,
        errors={},
    )


def on_fetch_resolved(state: ViewState, bundle: FetchBundle) -> ViewState:
    if bundle.token != state.token:
        return state
    return replace(
        state,
        loading=False,
        regional_series=bundle.regional_series,
        precipitation_series=bundle.precipitation_series,
        errors={name: err.message for name, err in bundle.errors.items()},
    )


def on_overlay_resolved(state: ViewState, token: int, url: Optional[str]) -> ViewState:
    if token != state.token or url is None:
        return state
    return replace(state, overlay_url=url)


def on_toggle(state: ViewState, category: str) -> ViewState:
    return replace(state, visibility=VisibilityProjector.toggle(state.visibility, category))


def merged_series(state: ViewState) -> MergedSeries:
    return SeriesMerger.merge(state.regional_series, state.precipitation_series)


def chart_description(state: ViewState, catalog: CategoryCatalog = DEFAULT_CATALOG) -> ChartDescription:
    """Chart for the current state; empty while loading or when either series is unavailable."""
    if state.loading or not state.has_data:
        return ChartDescription()
    merged = merged_series(state)
    projected = VisibilityProjector.project(merged, state.visibility, catalog)
    return ChartComposer.compose(merged.labels, projected)


class ViewStore:
    """
    Per-session state holder.
    The selection controller is the only writer of the token; transitions that
    carry a token are ignored when it is no longer the controller's current one.
    """

    def __init__(self, catalog: CategoryCatalog = DEFAULT_CATALOG):
        self.catalog = catalog
        self.controller = SelectionController()
        self._lock = threading.Lock()
        self._state = initial_state(catalog)

    @property
    def state(self) -> ViewState:
        with self._lock:
            return self._state

    def select(self, identity: RegionIdentity) -> int:
        with self._lock:
            token = self.controller.select(identity)
            self._state = on_select(self._state, identity, token)
            return token

    def clear(self) -> None:
        with self._lock:
            token = self.controller.clear()
            self._state = on_clear(self._state, token)

    def resolve(self, bundle: FetchBundle) -> bool:
        """Applies a settled fetch. Returns False when it was stale."""
        with self._lock:
            if not self.controller.is_current(bundle.token):
                return False
            self._state = on_fetch_resolved(self._state, bundle)
            return True

    def resolve_overlay(self, token: int, url: Optional[str]) -> bool:
        with self._lock:
            if not self.controller.is_current(token):
                return False
            self._state = on_overlay_resolved(self._state, token, url)
            return True

    def toggle(self, category: str) -> ViewState:
        with self._lock:
            self._state = on_toggle(self._state, category)
            return self._state

    def reset_visibility(self) -> ViewState:
        """Re-initialises the toggles from the catalog."""
        with self._lock:
            self._state = replace(self._state, visibility=self.catalog.default_visibility())
            return self._state

    def chart(self) -> ChartDescription:
        return chart_description(self.state, self.catalog)
