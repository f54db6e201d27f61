# karauli/gradio_app.py
"""
Karauli Land Cover Explorer - Gradio Application
Village selection, land cover / precipitation time series, series toggles and exports
"""

import concurrent.futures
import logging
import os
from datetime import datetime
from typing import List, Optional

import folium
import gradio as gr
import matplotlib.pyplot as plt

from karauli.charts import ChartComposer, render_chart
from karauli.constants import (
    DEFAULT_CATALOG, PRECIPITATION, MAP_CENTER, MAP_ZOOM, VECTOR_STYLE, SELECTED_VILLAGE_STYLE,
    NO_DATA_MESSAGE, VILLAGE_NAME_COL, SUB_DISTRICT_COL,
)
from karauli.exporter import ExportEncoder, save_to_directory
from karauli.fetch import DataFetchCoordinator
from karauli.service import KarauliService
from karauli.state import ViewStore, chart_description

logger = logging.getLogger(__name__)

# Global service instances
service = KarauliService()
_executor = concurrent.futures.ThreadPoolExecutor(max_workers=12, thread_name_prefix="karauli-fetch")

PLACEHOLDER_TEXT = "Select a village to view the time series data."
LOADING_TEXT = "Loading time series data... (20sec)"


def new_session() -> ViewStore:
    return ViewStore(DEFAULT_CATALOG)


def get_coordinator(store: ViewStore) -> DataFetchCoordinator:
    """One executor for the whole app; each session brings its own selection controller."""
    return DataFetchCoordinator(service.client, store.controller, executor=_executor)


def toggle_choices():
    """(label, value) pairs for the series toggle checkboxes, catalog order then Precipitation."""
    choices = [(DEFAULT_CATALOG.toggle_label(c), c) for c in DEFAULT_CATALOG]
    choices.append((DEFAULT_CATALOG.toggle_label(PRECIPITATION), PRECIPITATION))
    return choices


def _visible_keys(visibility) -> List[str]:
    return [key for key, shown in visibility.items() if shown]


def _generate_map_html(village_row=None, overlay_url: Optional[str] = None) -> str:
    """Base map, optional classified raster overlay, all village boundaries and the selected village outline."""
    m = folium.Map(location=list(MAP_CENTER), zoom_start=MAP_ZOOM, tiles=None)
    folium.TileLayer("OpenStreetMap", name="OpenStreetMap").add_to(m)

    if overlay_url:
        folium.TileLayer(tiles=overlay_url, attr="Karauli LULC", name="Raster Data", overlay=True).add_to(m)

    villages = service.villages_gdf
    if villages is not None and not villages.empty:
        folium.GeoJson(
            villages[[VILLAGE_NAME_COL, SUB_DISTRICT_COL, villages.geometry.name]],
            name="Vector Data",
            style_function=lambda _feature: VECTOR_STYLE,
            tooltip=folium.GeoJsonTooltip(fields=[VILLAGE_NAME_COL, SUB_DISTRICT_COL],
                                          aliases=["Village", "Sub District"]),
        ).add_to(m)

    if village_row is not None and not village_row.empty:
        folium.GeoJson(
            village_row.__geo_interface__,
            name="Selected Village",
            style_function=lambda _feature: SELECTED_VILLAGE_STYLE,
        ).add_to(m)
        minx, miny, maxx, maxy = village_row.total_bounds
        m.fit_bounds([[miny, minx], [maxy, maxx]], padding=(50, 50))

    folium.LayerControl(position="topright").add_to(m)

    rows = ''.join([f'''<div style="display:flex;align-items:center;margin-bottom:4px;">
        <div style="background:{DEFAULT_CATALOG.color(c)};width:18px;height:18px;margin-right:8px;"></div>
        <span style="font-size:11px;color:black;">{c}</span></div>''' for c in DEFAULT_CATALOG])
    legend_html = f'''
    <div style="position:absolute; bottom:20px; right:10px; z-index:1000; padding:6px;
                background:rgba(255,255,255,1); border-radius:4px; max-width:250px;">
      <div style="text-align:center; margin-bottom:5px; color:black;"><strong>Legend</strong></div>
      {rows}
    </div>'''
    m.get_root().html.add_child(folium.Element(legend_html))
    return m._repr_html_()


def _village_row(identity):
    if identity is None:
        return None
    try:
        return service.get_village_row(identity.sub_district, identity.name)
    except (RuntimeError, ValueError) as e:
        logger.warning("No boundary for %s: %s", identity.name, e)
        return None


def _details_markdown(identity) -> str:
    if identity is None:
        return ""
    return (
        "### Village Details\n"
        f"**Name:** {identity.name}  \n"
        f"**Sub District:** {identity.sub_district}  \n"
        f"**State:** {identity.state}"
    )


def _status_text(state) -> str:
    if state.identity is None:
        return PLACEHOLDER_TEXT
    if state.loading:
        return LOADING_TEXT
    if state.unavailable:
        missing = ", ".join(sorted(state.errors)) or "time series"
        return f"Data unavailable for {state.identity.name} ({missing})."
    return f"✓ {state.identity.name}: {len(state.regional_series)} years loaded"


def _render_plot(state):
    if state.loading or not state.has_data:
        return gr.update(visible=False, value=None)
    fig = render_chart(chart_description(state, DEFAULT_CATALOG), ChartComposer.chart_options())
    plt.close(fig)
    return gr.update(visible=True, value=fig)


def _render_table(state):
    if not state.has_data:
        return gr.update(visible=False, value=None)
    frame = ExportEncoder.build_frame(state.regional_series, state.precipitation_series)
    return gr.update(visible=True, value=frame)


def _view_outputs(store: ViewStore, map_html=None):
    """Outputs for the whole right-hand panel, always rendered from the store's current state."""
    state = store.state
    export_ok = state.export_enabled
    return (
        _details_markdown(state.identity),
        _status_text(state),
        _render_plot(state),
        gr.update() if map_html is None else map_html,
        _render_table(state),
        gr.update(interactive=export_ok),
        gr.update(interactive=export_ok),
    )


def on_app_load():
    """Load the village layer, fill the sub-district dropdown and draw the boundaries."""
    try:
        if service.villages_gdf is None:
            service.load_villages()
    except Exception as e:
        logger.exception("Loading village boundaries failed")
        gr.Warning(f"Could not load village boundaries: {e}")
        return gr.update(choices=[], value=None), gr.update()
    return gr.update(choices=service.sub_districts(), value=None), _generate_map_html()


def end_session(store: ViewStore):
    """Session teardown: anything still in flight for this session is discarded."""
    store.clear()


def on_sub_district_change(sub_district):
    """Return updated village choices for the selected sub-district."""
    if not sub_district:
        return gr.update(choices=[], value=None)
    try:
        return gr.update(choices=service.villages(sub_district), value=None)
    except Exception as e:
        raise gr.Error(f"Error loading villages: {str(e)}")


def on_village_select(store: ViewStore, sub_district, village):
    """
    Selection handler. Yields the loading view, then the fetched view, then the
    map with the overlay once it resolves. A handler overtaken by a newer
    selection stops yielding.
    """
    if not sub_district or not village:
        return

    try:
        row = service.get_village_row(sub_district, village)
        identity = service.region_identity(row)
    except (RuntimeError, ValueError) as e:
        raise gr.Error(str(e))

    token = store.select(identity)
    map_html = _generate_map_html(row)
    if not store.controller.is_current(token):
        return
    yield _view_outputs(store, map_html=map_html)

    coordinator = get_coordinator(store)
    bundle = coordinator.fetch(identity, token)
    if bundle is None or not store.resolve(bundle):
        return
    yield _view_outputs(store)

    url = coordinator.resolve_overlay(bundle, timeout=service.settings["timeout_seconds"])
    if url is None or not store.resolve_overlay(token, url):
        return
    yield _view_outputs(store, map_html=_generate_map_html(_village_row(identity), url))


def on_toggles_change(store: ViewStore, selected):
    """Apply one toggle per series whose checkbox changed."""
    selected = set(selected or [])
    for key, shown in store.state.visibility.items():
        if (key in selected) != shown:
            store.toggle(key)
    return _render_plot(store.state)


def on_reset_toggles(store: ViewStore):
    state = store.reset_visibility()
    return gr.update(value=_visible_keys(state.visibility)), _render_plot(state)


def export_csv(store: ViewStore):
    """Export the merged (unfiltered) village data as CSV."""
    state = store.state
    if not state.export_enabled:
        raise gr.Error(NO_DATA_MESSAGE)

    deliver = save_to_directory(os.path.join(os.getcwd(), service.settings["exports_dir"]))
    result = ExportEncoder.export(state.identity, state.regional_series, state.precipitation_series, deliver)
    if not result.ok:
        raise gr.Error(result.message)
    gr.Info(f"✅ CSV Export Saved: {result.filename}", duration=10)
    return result.delivered


def export_excel(store: ViewStore):
    """Export the merged village data with metadata to Excel."""
    state = store.state
    if not state.export_enabled or not state.regional_series:
        raise gr.Error(NO_DATA_MESSAGE)

    identity = state.identity
    frame = ExportEncoder.build_frame(state.regional_series, state.precipitation_series)
    meta = {
        "Village": identity.name,
        "Sub District": identity.sub_district,
        "State": identity.state,
        "Years": f"{frame['Year'].iloc[0]}-{frame['Year'].iloc[-1]}",
        "Timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    }

    exports_dir = os.path.join(os.getcwd(), service.settings["exports_dir"])
    os.makedirs(exports_dir, exist_ok=True)
    filename = ExportEncoder.filename(identity).replace(".csv", ".xlsx")
    path = ExportEncoder.export_excel_report(os.path.join(exports_dir, filename), frame, meta)
    gr.Info(f"✅ Excel Export Saved: {filename}", duration=10)
    return path


# ===================== BUILD GRADIO UI =====================

with gr.Blocks(title="Karauli Land Cover Explorer", theme=gr.themes.Soft()) as app:

    session = gr.State(new_session, delete_callback=end_session)

    gr.Markdown("""
    # 🌾 Karauli Land Cover Explorer

    Land cover change and precipitation for the villages of Karauli district, Rajasthan.
    """)

    with gr.Row():
        with gr.Column(scale=1, min_width=300):
            gr.Markdown("### 📍 Village")
            subd_dd = gr.Dropdown(choices=[], label="Sub District", interactive=True)
            village_dd = gr.Dropdown(choices=[], label="Village", interactive=True)

            details_out = gr.Markdown()

            gr.Markdown("### 📤 Export")
            with gr.Row():
                csv_btn = gr.Button("📥 Download Data as CSV", size="sm", interactive=False)
                xlsx_btn = gr.Button("📊 Excel", size="sm", interactive=False)
            export_out = gr.File(label="Download", height=60)

        with gr.Column(scale=3):
            with gr.Tabs():
                with gr.Tab("🗺️ Map"):
                    map_out = gr.HTML(value=_generate_map_html())

                with gr.Tab("📈 Land Cover Change Over Time"):
                    toggles = gr.CheckboxGroup(
                        choices=toggle_choices(),
                        value=_visible_keys(DEFAULT_CATALOG.default_visibility()),
                        label="Series",
                        interactive=True,
                    )
                    reset_btn = gr.Button("Reset series", size="sm")
                    status_out = gr.Markdown(PLACEHOLDER_TEXT)
                    plot_out = gr.Plot(label="Land Cover Change Over Time", visible=False)

                with gr.Tab("📊 Data"):
                    table_out = gr.DataFrame(label="All Years", visible=False)

    view_outputs = [details_out, status_out, plot_out, map_out, table_out, csv_btn, xlsx_btn]

    app.load(on_app_load, outputs=[subd_dd, map_out])
    subd_dd.change(on_sub_district_change, inputs=[subd_dd], outputs=[village_dd])

    # Several selections may be in flight; stale ones stop yielding
    village_dd.change(
        on_village_select,
        inputs=[session, subd_dd, village_dd],
        outputs=view_outputs,
        concurrency_limit=4,
    )

    toggles.change(on_toggles_change, inputs=[session, toggles], outputs=[plot_out])
    reset_btn.click(on_reset_toggles, inputs=[session], outputs=[toggles, plot_out])

    csv_btn.click(export_csv, inputs=[session], outputs=[export_out])
    xlsx_btn.click(export_excel, inputs=[session], outputs=[export_out])

if __name__ == "__main__":
    app.launch()
