from __future__ import annotations

from pathlib import Path
from typing import List, MutableMapping, Optional, Sequence

import pandas as pd
import streamlit as st
import streamlit.components.v1 as components
import streamlit.runtime as st_runtime

from dataset_config import BELT_FILTER_ALL, DATASET_KEYS, DATASETS, DatasetConfig, get_dataset
from geojson_data import (
    Feature,
    GeoJSONDocument,
    attribute_label,
    extract_attributes,
    filter_by_category,
    get_features,
    load_geojson,
    properties_frame,
)
from sequence import SequenceController
from symbols import build_symbol_map

DEFAULT_DATASET = "population"
MAP_HEIGHT = 700
TABLE_ROWS = 200

SLIDER_KEY = "sequence_slider"
LABEL_KEY = "sequence_label"
CONTROLLER_KEY = "sequence_controller"
SIGNATURE_KEY = "sequence_signature"

DEFAULT_UI_STATE = {
    "dataset_key": DEFAULT_DATASET,
    "category_choice": BELT_FILTER_ALL,
    SLIDER_KEY: 0,
    LABEL_KEY: "",
}


class SessionSequenceView:
    """Mirrors the controller's index and label into widget state."""

    def __init__(self, state: MutableMapping[str, object]) -> None:
        self.state = state

    def show_index(self, index: int) -> None:
        self.state[SLIDER_KEY] = index

    def show_label(self, text: str) -> None:
        self.state[LABEL_KEY] = text


def _initialize_ui_state() -> None:
    for key, value in DEFAULT_UI_STATE.items():
        st.session_state.setdefault(key, value)


def _streamlit_runtime_exists() -> bool:
    try:
        return bool(st_runtime.exists())
    except Exception:
        return False


def _cache_data_passthrough(*_args, **_kwargs):
    def decorator(func):
        return func

    return decorator


def _safe_cache_data(*args, **kwargs):
    if _streamlit_runtime_exists():
        return st.cache_data(*args, **kwargs)
    return _cache_data_passthrough(*args, **kwargs)


@_safe_cache_data(show_spinner=False)
def load_dataset_document(path_str: str, modified_time: float) -> Optional[GeoJSONDocument]:
    _ = modified_time
    return load_geojson(path_str)


def _modified_time(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


def _controller_signature(dataset_key: str, attributes: Sequence[str]) -> str:
    return f"{dataset_key}|{','.join(attributes)}"


def get_sequence_controller(
    state: MutableMapping[str, object],
    dataset_key: str,
    attributes: Sequence[str],
) -> SequenceController:
    """Reuse the stored controller unless the dataset or its attributes changed."""
    signature = _controller_signature(dataset_key, attributes)
    controller = state.get(CONTROLLER_KEY)
    if isinstance(controller, SequenceController) and state.get(SIGNATURE_KEY) == signature:
        return controller

    controller = SequenceController(attributes, view=SessionSequenceView(state))
    state[CONTROLLER_KEY] = controller
    state[SIGNATURE_KEY] = signature
    state[SLIDER_KEY] = controller.index
    state[LABEL_KEY] = controller.label
    return controller


def _on_slider_change() -> None:
    controller = st.session_state.get(CONTROLLER_KEY)
    if isinstance(controller, SequenceController):
        controller.set_index(int(st.session_state[SLIDER_KEY]))


def _on_step_forward() -> None:
    controller = st.session_state.get(CONTROLLER_KEY)
    if isinstance(controller, SequenceController):
        controller.step_forward()


def _on_step_reverse() -> None:
    controller = st.session_state.get(CONTROLLER_KEY)
    if isinstance(controller, SequenceController):
        controller.step_reverse()


def visible_features(
    dataset: DatasetConfig,
    features: List[Feature],
    category_choice: Optional[str],
) -> List[Feature]:
    if not dataset.has_category_filter:
        return features
    return filter_by_category(features, dataset.category_field, category_choice)


def feature_table(features: List[Feature], attribute: Optional[str]) -> pd.DataFrame:
    table = properties_frame(features)
    if attribute and attribute in table.columns:
        ordered = [attribute] + [col for col in table.columns if col != attribute]
        table = table.loc[:, ordered]
    return table


def _render_sequence_controls(controller: SequenceController) -> None:
    attributes = controller.attributes
    reverse_col, slider_col, forward_col = st.columns([1, 6, 1])
    with reverse_col:
        st.button("◀", key="step_reverse", on_click=_on_step_reverse, help="Previous")
    with slider_col:
        st.select_slider(
            "Attribute",
            options=list(range(len(attributes))),
            format_func=lambda index: attribute_label(attributes[index]),
            key=SLIDER_KEY,
            on_change=_on_slider_change,
            label_visibility="collapsed",
        )
    with forward_col:
        st.button("▶", key="step_forward", on_click=_on_step_forward, help="Next")


def app() -> None:
    st.set_page_config(
        page_title="Proportional Symbol Explorer",
        page_icon=":round_pushpin:",
        layout="wide",
    )

    st.title("Proportional Symbol Explorer")
    st.caption("Scrub through dataset fields to animate proportional circle markers.")
    _initialize_ui_state()

    with st.sidebar:
        st.header("Dataset")
        dataset_key = st.selectbox(
            "Choose dataset",
            options=DATASET_KEYS,
            format_func=lambda key: DATASETS[key].title,
            key="dataset_key",
        )
        dataset = get_dataset(dataset_key)

        category_choice: Optional[str] = None
        if dataset.has_category_filter:
            st.subheader("Legend / Filter")
            category_choice = st.selectbox(
                f"Filter by {dataset.category_field}",
                options=list(dataset.filter_options),
                key="category_choice",
            )

    data_path = dataset.data_file
    document = load_dataset_document(str(data_path), _modified_time(data_path))
    if document is None:
        st.caption(f"No data loaded from `{data_path}`.")
        return

    attributes = extract_attributes(document, dataset.allow_list)
    controller = get_sequence_controller(st.session_state, dataset.key, attributes)

    if attributes:
        _render_sequence_controls(controller)
        st.markdown(f"**Showing:** {st.session_state.get(LABEL_KEY, controller.label)}")
    else:
        st.info("This dataset has no fields to animate.")

    features = visible_features(dataset, get_features(document), category_choice)
    attribute = controller.current_attribute

    with st.spinner("Rendering map..."):
        symbol_map, rendered_count = build_symbol_map(
            dataset=dataset,
            features=features,
            attribute=attribute,
            category=category_choice,
        )
    components.html(symbol_map.get_root().render(), height=MAP_HEIGHT, scrolling=False)

    with st.expander(f"Features ({rendered_count:,})"):
        table = feature_table(features, attribute)
        st.dataframe(table.head(TABLE_ROWS), use_container_width=True, hide_index=True)
        st.download_button(
            label="Download Features CSV",
            data=table.to_csv(index=False).encode("utf-8"),
            file_name=f"{dataset.key}_features.csv",
            mime="text/csv",
        )


if __name__ == "__main__":
    if not _streamlit_runtime_exists():
        raise SystemExit("Run this UI with: python3 -m streamlit run app.py")
    app()
