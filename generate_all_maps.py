"""Write one static proportional-symbol map per sequence attribute."""

from __future__ import annotations

import argparse
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dataset_config import BELT_FILTER_OPTIONS, DATASET_KEYS, DatasetConfig, get_dataset
from geojson_data import (
    GeoJSONDocument,
    attribute_label,
    extract_attributes,
    filter_by_category,
    get_features,
    load_geojson,
)
from sequence import SequenceController
from symbols import build_symbol_map

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = Path("output")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class FrameBuildResult:
    dataset: DatasetConfig
    attributes: List[str]
    feature_count: int
    frames: List[Path]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Render a proportional-symbol map frame for every dataset field."
    )
    parser.add_argument(
        "--dataset",
        choices=DATASET_KEYS,
        default="population",
        help="Dataset to render.",
    )
    parser.add_argument(
        "--data-file",
        default=None,
        help="GeoJSON path or URL. Defaults to the dataset's bundled file.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help="Directory where output HTML frames will be written.",
    )
    parser.add_argument(
        "--category",
        choices=BELT_FILTER_OPTIONS,
        default=None,
        help="Restrict the population dataset to one belt.",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="INFO",
        help="Logging verbosity.",
    )
    return parser.parse_args(argv)


def _validate_args(args: argparse.Namespace, dataset: DatasetConfig) -> None:
    if args.category and not dataset.has_category_filter:
        raise SystemExit(f"--category is not supported for the '{dataset.key}' dataset.")
    if args.output_dir.exists() and not args.output_dir.is_dir():
        raise SystemExit(f"--output-dir is not a directory: {args.output_dir}")


def frame_filename(dataset_key: str, attribute: Optional[str]) -> str:
    label = attribute_label(attribute) if attribute else "static"
    slug = re.sub(r"[^A-Za-z0-9]+", "_", label).strip("_").lower() or "frame"
    return f"{dataset_key}_{slug}.html"


def build_frames(
    dataset: DatasetConfig,
    document: GeoJSONDocument,
    output_dir: Path,
    category: Optional[str] = None,
) -> FrameBuildResult:
    features = get_features(document)
    if dataset.has_category_filter:
        features = filter_by_category(features, dataset.category_field, category)
    attributes = extract_attributes(document, dataset.allow_list)
    frames: List[Path] = []
    rendered_counts: List[int] = []

    def _write_frame(attribute: Optional[str]) -> None:
        symbol_map, rendered_count = build_symbol_map(
            dataset=dataset,
            features=features,
            attribute=attribute,
            category=category,
        )
        rendered_counts.append(rendered_count)
        path = output_dir / frame_filename(dataset.key, attribute)
        symbol_map.save(str(path))
        frames.append(path)
        logger.info("Wrote %s", path)

    if not attributes:
        _write_frame(None)
    else:
        controller = SequenceController(attributes, on_change=_write_frame)
        controller.refresh()
        for _ in range(len(attributes) - 1):
            controller.step_forward()

    return FrameBuildResult(
        dataset=dataset,
        attributes=attributes,
        feature_count=rendered_counts[-1] if rendered_counts else 0,
        frames=frames,
    )


def _print_summary(result: FrameBuildResult, source: str) -> None:
    print("Generated maps:")
    for path in result.frames:
        print(f"- {path.resolve()}")
    print("\nCounts:")
    print(f"- Dataset: {result.dataset.title} | source={source}")
    print(f"- Features rendered: {result.feature_count}")
    print(f"- Attributes: {', '.join(attribute_label(a) for a in result.attributes) or 'none'}")
    print(f"- Generated at: {datetime.now().isoformat(timespec='seconds')}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s  %(levelname)-8s  %(message)s",
        datefmt="%H:%M:%S",
    )

    dataset = get_dataset(args.dataset)
    _validate_args(args, dataset)

    source = args.data_file or str(dataset.data_file)
    document = load_geojson(source)
    if document is None:
        return 1

    args.output_dir.mkdir(parents=True, exist_ok=True)
    result = build_frames(
        dataset=dataset,
        document=document,
        output_dir=args.output_dir,
        category=args.category,
    )
    _print_summary(result, source=source)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
