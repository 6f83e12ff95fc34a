"""Dataset registry: file paths, attribute allow-lists, and symbol styling."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

RADIUS_SQRT = "sqrt"
RADIUS_LINEAR = "linear"

POPUP_ALL_PROPERTIES = "all_properties"
POPUP_CITY_POPULATION = "city_population"

POPULATION_YEARS = tuple(range(1990, 2025, 5))
POPULATION_FIELD_PREFIX = "USER_F"

BELT_FIELD = "Belt"
BELT_FILTER_ALL = "All"
BELT_FILTER_OPTIONS = (BELT_FILTER_ALL, "Rust Belt", "Sun Belt")


@dataclass(frozen=True)
class DatasetConfig:
    key: str
    title: str
    data_file: Path
    allow_list: Tuple[str, ...]
    radius_policy: str
    min_radius: float
    fixed_color: str
    center: Tuple[float, float]
    zoom: int
    popup_style: str
    sqrt_multiplier: float = 0.03
    linear_divisors: Dict[str, float] = field(default_factory=dict)
    category_field: Optional[str] = None
    category_colors: Dict[str, str] = field(default_factory=dict)
    name_field: Optional[str] = None
    filter_options: Tuple[str, ...] = ()

    @property
    def has_category_filter(self) -> bool:
        return self.category_field is not None and bool(self.filter_options)


CRIME = DatasetConfig(
    key="crime",
    title="Chicago Crime Incidents",
    data_file=Path("data/ChicagoCrimeCSV2.geojson"),
    allow_list=("District", "Ward", "Community Area", "Beat"),
    radius_policy=RADIUS_LINEAR,
    min_radius=4.0,
    fixed_color="#ff7805",
    center=(41.791815984698715, -87.79712747210827),
    zoom=15,
    popup_style=POPUP_ALL_PROPERTIES,
    # Beat codes run into the thousands; the other codes stay below 100.
    linear_divisors={
        "District": 2.0,
        "Ward": 4.0,
        "Community Area": 6.0,
        "Beat": 100.0,
    },
)

POPULATION = DatasetConfig(
    key="population",
    title="US City Population",
    data_file=Path("data/CityPopulations.geojson"),
    allow_list=tuple(f"{POPULATION_FIELD_PREFIX}{year}" for year in POPULATION_YEARS),
    radius_policy=RADIUS_SQRT,
    min_radius=3.0,
    fixed_color="#6b7280",
    center=(39.8, -98.6),
    zoom=4,
    popup_style=POPUP_CITY_POPULATION,
    sqrt_multiplier=0.03,
    category_field=BELT_FIELD,
    category_colors={
        "Rust Belt": "#b45309",
        "Sun Belt": "#facc15",
    },
    name_field="City",
    filter_options=BELT_FILTER_OPTIONS,
)

DATASETS: Dict[str, DatasetConfig] = {
    CRIME.key: CRIME,
    POPULATION.key: POPULATION,
}

DATASET_KEYS: List[str] = list(DATASETS.keys())


def get_dataset(key: str) -> DatasetConfig:
    normalized = key.strip().lower()
    if normalized not in DATASETS:
        raise KeyError(
            f"Unknown dataset: '{key}'. Valid datasets: {', '.join(DATASET_KEYS)}."
        )
    return DATASETS[normalized]
