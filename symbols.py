"""Proportional symbol styling and Folium marker rendering.

Each point feature becomes a circle marker whose radius encodes the selected
attribute and whose color encodes the dataset's category field, if any. The
renderer owns the marker layer it last drew and swaps it wholesale on every
render.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

try:
    import folium
    from branca.element import MacroElement, Template
    from folium import plugins
except ImportError as exc:
    raise SystemExit(
        "Folium dependencies are missing. Run: pip3 install -e ."
    ) from exc

from dataset_config import (
    POPUP_ALL_PROPERTIES,
    POPUP_CITY_POPULATION,
    RADIUS_LINEAR,
    RADIUS_SQRT,
    DatasetConfig,
)
from geojson_data import Feature, attribute_label, feature_location, get_properties

logger = logging.getLogger(__name__)

OUTLINE_COLOR = "#000"
POPUP_MAX_WIDTH = 320


def _numeric_value(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def radius(value: object, attribute: Optional[str], dataset: DatasetConfig) -> float:
    number = _numeric_value(value)
    if number is None or number < 0:
        return dataset.min_radius

    if dataset.radius_policy == RADIUS_SQRT:
        return dataset.min_radius + math.sqrt(number) * dataset.sqrt_multiplier
    if dataset.radius_policy == RADIUS_LINEAR:
        divisor = dataset.linear_divisors.get(attribute or "", 1.0)
        return dataset.min_radius + number / divisor
    raise ValueError(f"Unknown radius policy: '{dataset.radius_policy}'.")


def resolve_color(properties: Dict[str, object], dataset: DatasetConfig) -> str:
    if not dataset.category_field:
        return dataset.fixed_color
    category = properties.get(dataset.category_field)
    if category is None:
        return dataset.fixed_color
    wanted = str(category).strip().lower()
    for name, color in dataset.category_colors.items():
        if name.lower() == wanted:
            return color
    return dataset.fixed_color


def format_population(value: object) -> str:
    # Thousands separators come from the format mini-language, not the host locale.
    number = _numeric_value(value)
    if number is None:
        return "" if value is None else str(value)
    if math.isinf(number):
        return str(number)
    return f"{int(round(number)):,}"


def _text(value: object) -> str:
    return "" if value is None else str(value)


def _all_properties_popup(properties: Dict[str, object]) -> str:
    return "".join(f"<p>{key}: {value}</p>" for key, value in properties.items())


def _city_population_popup(
    properties: Dict[str, object],
    attribute: Optional[str],
    dataset: DatasetConfig,
) -> str:
    name = _text(properties.get(dataset.name_field)) if dataset.name_field else ""
    label = attribute_label(attribute) if attribute else ""
    population = format_population(properties.get(attribute)) if attribute else ""
    return (
        f"<p><b>City:</b> {name}</p>"
        f"<p><b>Population in {label}:</b> {population}</p>"
    )


def popup_content(
    properties: Dict[str, object],
    attribute: Optional[str],
    dataset: DatasetConfig,
) -> str:
    if dataset.popup_style == POPUP_ALL_PROPERTIES:
        return _all_properties_popup(properties)
    if dataset.popup_style == POPUP_CITY_POPULATION:
        return _city_population_popup(properties, attribute, dataset)
    raise ValueError(f"Unknown popup style: '{dataset.popup_style}'.")


def tooltip_text(
    properties: Dict[str, object],
    attribute: Optional[str],
    dataset: DatasetConfig,
) -> str:
    if not attribute:
        return _text(properties.get(dataset.name_field)) if dataset.name_field else ""
    label = attribute_label(attribute)
    if dataset.name_field:
        name = _text(properties.get(dataset.name_field))
        return f"{name} | {label}: {format_population(properties.get(attribute))}"
    return f"{label}: {_text(properties.get(attribute))}"


@dataclass(frozen=True)
class MarkerSymbol:
    location: Tuple[float, float]
    radius: float
    color: str
    popup_html: str
    tooltip: str


def symbol_for(
    feature: Feature,
    attribute: Optional[str],
    dataset: DatasetConfig,
) -> Optional[MarkerSymbol]:
    location = feature_location(feature)
    if location is None:
        return None
    properties = get_properties(feature)
    value = properties.get(attribute) if attribute else None
    return MarkerSymbol(
        location=location,
        radius=radius(value, attribute, dataset),
        color=resolve_color(properties, dataset),
        popup_html=popup_content(properties, attribute, dataset),
        tooltip=tooltip_text(properties, attribute, dataset),
    )


def circle_marker(symbol: MarkerSymbol) -> folium.CircleMarker:
    return folium.CircleMarker(
        location=list(symbol.location),
        radius=symbol.radius,
        color=OUTLINE_COLOR,
        weight=1,
        opacity=1,
        fill=True,
        fill_color=symbol.color,
        fill_opacity=0.8,
        popup=folium.Popup(symbol.popup_html, max_width=POPUP_MAX_WIDTH),
        tooltip=symbol.tooltip or None,
    )


class MapCanvas(Protocol):
    def add_layer(self, layer: folium.FeatureGroup) -> None:
        ...

    def remove_layer(self, layer: folium.FeatureGroup) -> None:
        ...


class FoliumCanvas:
    """Adds and removes overlay layers on a ``folium.Map``.

    Removal only detaches the layer before the map is rendered; a rendered
    branca figure keeps the scripts of detached children, so pages and frames
    each build a fresh map through ``build_symbol_map``.
    """

    def __init__(self, map_object: folium.Map) -> None:
        self.map_object = map_object

    def add_layer(self, layer: folium.FeatureGroup) -> None:
        layer.add_to(self.map_object)

    def remove_layer(self, layer: folium.FeatureGroup) -> None:
        # Branca keys children by element name and has no public removal call.
        self.map_object._children.pop(layer.get_name(), None)


class SymbolRenderer:
    def __init__(self, canvas: MapCanvas, dataset: DatasetConfig) -> None:
        self.canvas = canvas
        self.dataset = dataset
        self.current_layer: Optional[folium.FeatureGroup] = None
        self.current_symbols: List[MarkerSymbol] = []

    def render(
        self,
        features: Iterable[Feature],
        attribute: Optional[str],
    ) -> folium.FeatureGroup:
        label = attribute_label(attribute) if attribute else "none"
        layer = folium.FeatureGroup(name=f"{self.dataset.title} ({label})", show=True)

        symbols: List[MarkerSymbol] = []
        for feature in features:
            symbol = symbol_for(feature, attribute, self.dataset)
            if symbol is None:
                continue
            circle_marker(symbol).add_to(layer)
            symbols.append(symbol)

        previous = self.current_layer
        if previous is not None:
            self.canvas.remove_layer(previous)
        self.canvas.add_layer(layer)
        self.current_layer = layer
        self.current_symbols = symbols

        logger.debug(
            "Rendered %d markers for %s (replaced layer: %s)",
            len(symbols),
            label,
            previous.get_name() if previous is not None else "none",
        )
        return layer


def _add_legend_panel(
    map_object: folium.Map,
    dataset: DatasetConfig,
    attribute: Optional[str],
    feature_count: int,
    category: Optional[str],
) -> None:
    attribute_text = attribute_label(attribute) if attribute else "N/A"
    filter_text = f" | Filter: {category}" if category else ""

    if dataset.category_colors:
        legend_items = "".join(
            (
                f'<li><span class="swatch" style="background:{color};"></span>'
                f"{name}</li>"
            )
            for name, color in dataset.category_colors.items()
        )
    else:
        legend_items = (
            f'<li><span class="swatch" style="background:{dataset.fixed_color};"></span>'
            f"{dataset.title}</li>"
        )

    template = Template(
        f"""
        {{% macro html(this, kwargs) %}}
        <style>
          #symbol-legend {{
            position: fixed;
            bottom: 18px;
            left: 18px;
            z-index: 9999;
            width: 240px;
            background: rgba(255, 255, 255, 0.96);
            border-radius: 10px;
            border: 1px solid #d6dde8;
            box-shadow: 0 8px 20px rgba(10, 25, 47, 0.15);
            padding: 12px;
            font-family: Arial, sans-serif;
          }}
          #symbol-legend h3 {{
            margin: 0 0 6px 0;
            font-size: 16px;
            color: #0f172a;
          }}
          #symbol-legend p {{
            margin: 0 0 6px 0;
            font-size: 12px;
            color: #334155;
          }}
          #symbol-legend ul {{
            list-style: none;
            margin: 0;
            padding: 0;
          }}
          #symbol-legend li {{
            display: flex;
            align-items: center;
            font-size: 13px;
            padding: 3px 0;
            color: #1f2937;
          }}
          #symbol-legend .swatch {{
            display: inline-block;
            width: 12px;
            height: 12px;
            margin-right: 8px;
            border-radius: 50%;
            border: 1px solid #000;
          }}
        </style>
        <div id="symbol-legend">
          <h3>{dataset.title}</h3>
          <p>Showing: {attribute_text}{filter_text}</p>
          <p>Features: {feature_count:,}</p>
          <ul>{legend_items}</ul>
        </div>
        {{% endmacro %}}
        """
    )

    macro = MacroElement()
    macro._template = template
    map_object.get_root().add_child(macro)


def build_symbol_map(
    dataset: DatasetConfig,
    features: List[Feature],
    attribute: Optional[str],
    category: Optional[str] = None,
) -> Tuple[folium.Map, int]:
    """Build a fresh map for one attribute and return it with its marker count.

    Features without a usable location are skipped, so the count can be lower
    than ``len(features)``.
    """
    symbol_map = folium.Map(
        location=list(dataset.center),
        zoom_start=dataset.zoom,
        max_zoom=19,
        control_scale=True,
        tiles="OpenStreetMap",
    )

    plugins.Fullscreen(
        position="topright",
        title="Full screen",
        title_cancel="Exit full screen",
        force_separate_button=True,
    ).add_to(symbol_map)

    renderer = SymbolRenderer(FoliumCanvas(symbol_map), dataset)
    renderer.render(features, attribute)
    rendered_count = len(renderer.current_symbols)

    _add_legend_panel(
        map_object=symbol_map,
        dataset=dataset,
        attribute=attribute,
        feature_count=rendered_count,
        category=category,
    )
    return symbol_map, rendered_count
