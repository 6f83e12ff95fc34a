"""GeoJSON loading, attribute extraction, and category filtering."""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd
import requests

from dataset_config import BELT_FILTER_ALL, POPULATION_FIELD_PREFIX

logger = logging.getLogger(__name__)

Feature = Dict[str, object]
GeoJSONDocument = Dict[str, object]


def _is_url(source: str) -> bool:
    return source.startswith("http://") or source.startswith("https://")


def load_geojson(
    source: Union[str, Path],
    timeout: int = 30,
) -> Optional[GeoJSONDocument]:
    """Read a GeoJSON document from a relative path or an HTTP(S) URL.

    Any fetch or parse failure is logged and ``None`` is returned; callers
    render nothing in that case.
    """
    source_str = str(source)
    try:
        if _is_url(source_str):
            response = requests.get(source_str, timeout=timeout)
            response.raise_for_status()
            document = response.json()
        else:
            with Path(source_str).open("r", encoding="utf-8") as handle:
                document = json.load(handle)
    except (requests.RequestException, OSError, ValueError) as exc:
        logger.error("Error loading the GeoJSON data from %s: %s", source_str, exc)
        return None

    logger.info("Loaded %d features from %s", len(get_features(document)), source_str)
    return document


def get_features(document: Optional[GeoJSONDocument]) -> List[Feature]:
    if not isinstance(document, dict):
        return []
    features = document.get("features") or []
    if not isinstance(features, list):
        return []
    return [feature for feature in features if isinstance(feature, dict)]


def get_properties(feature: Feature) -> Dict[str, object]:
    properties = feature.get("properties")
    if isinstance(properties, dict):
        return properties
    return {}


def extract_attributes(
    document: Optional[GeoJSONDocument],
    allow_list: Sequence[str],
) -> List[str]:
    features = get_features(document)
    if not features:
        return []
    sample = get_properties(features[0])
    attributes = [name for name in allow_list if name in sample]
    logger.info("Extracted %d sequence attributes", len(attributes))
    return attributes


def attribute_label(name: str) -> str:
    if name.startswith(POPULATION_FIELD_PREFIX):
        suffix = name[len(POPULATION_FIELD_PREFIX):]
        if suffix.isdigit():
            return suffix
    return name


def feature_location(feature: Feature) -> Optional[Tuple[float, float]]:
    """Return ``(lat, lon)`` for a point feature, or ``None`` if unusable."""
    geometry = feature.get("geometry")
    if not isinstance(geometry, dict):
        return None
    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) < 2:
        return None
    try:
        lon = float(coordinates[0])
        lat = float(coordinates[1])
    except (TypeError, ValueError):
        return None
    if math.isnan(lat) or math.isnan(lon):
        return None
    return lat, lon


def _matches_category(feature: Feature, field: str, choice: str) -> bool:
    value = get_properties(feature).get(field)
    if value is None:
        return False
    return str(value).strip().lower() == choice.strip().lower()


def filter_by_category(
    features: Iterable[Feature],
    field: str,
    choice: Optional[str],
) -> List[Feature]:
    features = list(features)
    if not choice or choice.strip().lower() == BELT_FILTER_ALL.lower():
        return features
    return [feature for feature in features if _matches_category(feature, field, choice)]


def properties_frame(features: Iterable[Feature]) -> pd.DataFrame:
    rows = []
    for feature in features:
        row = dict(get_properties(feature))
        location = feature_location(feature)
        row["lat"] = location[0] if location else None
        row["lon"] = location[1] if location else None
        rows.append(row)
    return pd.DataFrame(rows)
