import math
import unittest

import folium

from dataset_config import CRIME, POPULATION
from geojson_data import extract_attributes, get_features
from sequence import SequenceController
from symbols import (
    FoliumCanvas,
    SymbolRenderer,
    build_symbol_map,
    format_population,
    popup_content,
    radius,
    resolve_color,
    symbol_for,
    tooltip_text,
)


def _feature(properties, coordinates=(-87.6, 41.8)):
    return {
        "type": "Feature",
        "properties": properties,
        "geometry": {"type": "Point", "coordinates": list(coordinates)},
    }


class RecordingCanvas:
    def __init__(self) -> None:
        self.layers = []
        self.calls = []

    def add_layer(self, layer) -> None:
        self.calls.append(("add", layer.get_name()))
        self.layers.append(layer)

    def remove_layer(self, layer) -> None:
        self.calls.append(("remove", layer.get_name()))
        self.layers.remove(layer)


class RadiusTests(unittest.TestCase):
    def test_population_radius_is_monotonic(self) -> None:
        values = [0, 1, 10, 99.5, 100, 10_000, 2_500_000]
        radii = [radius(value, "USER_F1990", POPULATION) for value in values]
        self.assertEqual(radii, sorted(radii))

    def test_crime_radius_is_monotonic(self) -> None:
        for attribute in CRIME.allow_list:
            radii = [radius(value, attribute, CRIME) for value in range(0, 2000, 37)]
            self.assertEqual(radii, sorted(radii), attribute)

    def test_missing_or_non_numeric_returns_minimum(self) -> None:
        for value in (None, float("nan"), "n/a", "", True, -5):
            self.assertEqual(radius(value, "USER_F1990", POPULATION), POPULATION.min_radius)
            self.assertEqual(radius(value, "Ward", CRIME), CRIME.min_radius)

    def test_population_uses_square_root_scale(self) -> None:
        self.assertAlmostEqual(radius(100, "USER_F1990", POPULATION), 3.3)
        self.assertAlmostEqual(radius("400", "USER_F1995", POPULATION), 3.6)

    def test_crime_uses_divided_linear_scale(self) -> None:
        self.assertAlmostEqual(radius(8, "District", CRIME), CRIME.min_radius + 4.0)
        self.assertAlmostEqual(radius(813, "Beat", CRIME), CRIME.min_radius + 8.13)

    def test_no_upper_clamp(self) -> None:
        self.assertGreater(radius(1e12, "USER_F1990", POPULATION), 1000)
        self.assertTrue(math.isinf(radius(float("inf"), "USER_F1990", POPULATION)))


class StylingTests(unittest.TestCase):
    def test_color_follows_belt_case_insensitively(self) -> None:
        self.assertEqual(
            resolve_color({"Belt": "rust belt"}, POPULATION),
            POPULATION.category_colors["Rust Belt"],
        )
        self.assertEqual(resolve_color({"Belt": "Corn Belt"}, POPULATION), POPULATION.fixed_color)
        self.assertEqual(resolve_color({}, POPULATION), POPULATION.fixed_color)

    def test_crime_color_is_fixed(self) -> None:
        self.assertEqual(resolve_color({"Belt": "Rust Belt"}, CRIME), "#ff7805")

    def test_crime_popup_lists_every_property(self) -> None:
        content = popup_content({"Primary Type": "THEFT", "Ward": 23}, "Ward", CRIME)
        self.assertEqual(content, "<p>Primary Type: THEFT</p><p>Ward: 23</p>")

    def test_population_popup_formats_counts(self) -> None:
        content = popup_content(
            {"City": "Detroit", "USER_F1990": 1027974},
            "USER_F1990",
            POPULATION,
        )
        self.assertIn("<b>City:</b> Detroit", content)
        self.assertIn("<b>Population in 1990:</b> 1,027,974", content)

    def test_population_popup_degrades_to_empty_values(self) -> None:
        content = popup_content({}, "USER_F1990", POPULATION)
        self.assertIn("<b>City:</b> </p>", content)
        self.assertIn("<b>Population in 1990:</b> </p>", content)

    def test_format_population_passes_through_text(self) -> None:
        self.assertEqual(format_population(1234.4), "1,234")
        self.assertEqual(format_population("unknown"), "unknown")
        self.assertEqual(format_population(None), "")

    def test_tooltips(self) -> None:
        self.assertEqual(
            tooltip_text({"City": "Miami", "USER_F2000": 362470}, "USER_F2000", POPULATION),
            "Miami | 2000: 362,470",
        )
        self.assertEqual(tooltip_text({"Beat": 813}, "Beat", CRIME), "Beat: 813")

    def test_feature_without_geometry_is_skipped(self) -> None:
        self.assertIsNone(symbol_for({"properties": {"Ward": 3}}, "Ward", CRIME))


class SymbolRendererTests(unittest.TestCase):
    def test_render_replaces_previous_layer(self) -> None:
        canvas = RecordingCanvas()
        renderer = SymbolRenderer(canvas, POPULATION)
        features = [_feature({"City": "A", "USER_F1990": 100, "USER_F1995": 400})]

        first = renderer.render(features, "USER_F1990")
        second = renderer.render(features, "USER_F1995")

        self.assertIs(renderer.current_layer, second)
        self.assertEqual(canvas.layers, [second])
        self.assertEqual(
            canvas.calls,
            [
                ("add", first.get_name()),
                ("remove", first.get_name()),
                ("add", second.get_name()),
            ],
        )

    def test_render_skips_unlocated_features(self) -> None:
        renderer = SymbolRenderer(RecordingCanvas(), CRIME)
        features = [_feature({"Ward": 3}), {"properties": {"Ward": 4}, "geometry": None}]
        renderer.render(features, "Ward")
        self.assertEqual(len(renderer.current_symbols), 1)

    def test_folium_canvas_detaches_layer(self) -> None:
        map_object = folium.Map(location=[0, 0], zoom_start=2)
        canvas = FoliumCanvas(map_object)
        renderer = SymbolRenderer(canvas, CRIME)
        first = renderer.render([_feature({"Ward": 3})], "Ward")
        second = renderer.render([_feature({"Ward": 4})], "Ward")
        self.assertNotIn(first.get_name(), map_object._children)
        self.assertIn(second.get_name(), map_object._children)

    def test_slider_drives_rendered_radii(self) -> None:
        document = {
            "type": "FeatureCollection",
            "features": [
                _feature({"City": "A", "USER_F1990": 100, "USER_F1995": 400}, (-80.0, 40.0)),
                _feature({"City": "B", "USER_F1990": 100, "USER_F1995": 400}, (-90.0, 35.0)),
            ],
        }
        features = get_features(document)
        attributes = extract_attributes(document, POPULATION.allow_list)
        renderer = SymbolRenderer(RecordingCanvas(), POPULATION)
        controller = SequenceController(
            attributes,
            on_change=lambda attribute: renderer.render(features, attribute),
        )

        controller.set_index(0)
        for symbol in renderer.current_symbols:
            self.assertAlmostEqual(symbol.radius, 3.3)

        controller.set_index(1)
        for symbol in renderer.current_symbols:
            self.assertAlmostEqual(symbol.radius, 3.6)
        self.assertEqual(len(renderer.current_symbols), 2)


class BuildSymbolMapTests(unittest.TestCase):
    def test_map_html_contains_markers_and_legend(self) -> None:
        features = [
            _feature({"City": "Detroit", "Belt": "Rust Belt", "USER_F1990": 1027974}),
        ]
        symbol_map, rendered_count = build_symbol_map(
            POPULATION, features, "USER_F1990", category="Rust Belt"
        )
        self.assertEqual(rendered_count, 1)
        html = symbol_map.get_root().render()
        self.assertIn("circleMarker", html)
        self.assertIn("symbol-legend", html)
        self.assertIn("Showing: 1990 | Filter: Rust Belt", html)

    def test_count_excludes_features_without_location(self) -> None:
        features = [
            _feature({"City": "Detroit", "USER_F1990": 1027974}),
            {"type": "Feature", "properties": {"City": "Ghost", "USER_F1990": 5}, "geometry": None},
        ]
        symbol_map, rendered_count = build_symbol_map(POPULATION, features, "USER_F1990")
        self.assertEqual(rendered_count, 1)
        self.assertIn("Features: 1<", symbol_map.get_root().render())


if __name__ == "__main__":
    unittest.main()
