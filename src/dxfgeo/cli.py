from __future__ import annotations

import argparse
import json
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Sequence

from .config import Settings
from .convert import to_geojson_file
from .document import read
from .entity import SUPPORTED_ENTITY_TYPES
from .merge import to_multi_geometry
from .ops import flatten, union_polygons
from .visibility import VisibilityOptions, process_overlapping_polygons


def _package_version() -> str:
    try:
        return version("dxfgeo")
    except PackageNotFoundError:
        return "0.0.0"


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dxfgeo",
        description="Convert DXF drawings to GeoJSON and resolve overlapping polygons.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_package_version()}",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level, e.g. DEBUG/INFO/WARNING (default from DXFGEO_LOG_LEVEL).",
    )
    subparsers = parser.add_subparsers(dest="command")

    inspect_parser = subparsers.add_parser("inspect", help="Show entity counts of a DXF file.")
    inspect_parser.add_argument("path", help="Path to DXF file.")

    convert_parser = subparsers.add_parser("convert", help="Convert DXF to GeoJSON.")
    convert_parser.add_argument("input_path", help="Path to DXF file.")
    convert_parser.add_argument("output_path", help="Path to output GeoJSON file.")
    convert_parser.add_argument(
        "--source-crs",
        default=settings.source_crs,
        help="CRS of the drawing coordinates, e.g. EPSG:32644.",
    )
    convert_parser.add_argument(
        "--target-crs",
        default=settings.target_crs,
        help="Output CRS (default EPSG:4326).",
    )
    convert_parser.add_argument(
        "--segments",
        type=int,
        default=settings.segments_per_arc,
        help="Straight segments per tessellated arc.",
    )
    convert_parser.add_argument(
        "--types",
        default=None,
        help='Entity filter, e.g. "LINE ARC LWPOLYLINE".',
    )
    convert_parser.add_argument(
        "--multi",
        action="store_true",
        help="Aggregate lines into one MultiLineString and polygons into one MultiPolygon.",
    )
    convert_parser.add_argument(
        "--resolve-overlaps",
        action="store_true",
        help="Keep only the visible part of stacked polygons (input order = top first).",
    )
    _add_visibility_arguments(convert_parser, settings)

    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Resolve overlapping polygons of a GeoJSON file.",
    )
    resolve_parser.add_argument("input_path", help="Path to GeoJSON file.")
    resolve_parser.add_argument("output_path", help="Path to output GeoJSON file.")
    resolve_parser.add_argument(
        "--order-by",
        default="z",
        help="Property holding the stacking key (higher = on top).",
    )
    _add_visibility_arguments(resolve_parser, settings)
    resolve_parser.add_argument(
        "--union",
        action="store_true",
        help="Dissolve the visible polygons into one feature.",
    )
    resolve_parser.add_argument(
        "--flatten",
        action="store_true",
        help="Explode multi-part results into one feature per part.",
    )
    return parser


def _add_visibility_arguments(parser: argparse.ArgumentParser, settings: Settings) -> None:
    parser.add_argument(
        "--min-covered-pct",
        type=float,
        default=settings.min_covered_pct,
        help="Drop polygons covered by at least this percentage (0-100).",
    )
    parser.add_argument(
        "--no-clip",
        action="store_true",
        help="Keep original shapes of visible polygons instead of their visible remainder.",
    )


def _run_inspect(path: str) -> int:
    file_path = Path(path)
    if not file_path.exists():
        print(f"error: file not found: {file_path}", file=sys.stderr)
        return 2

    try:
        doc = read(file_path)
    except Exception as exc:
        print(f"error: failed to read DXF: {exc}", file=sys.stderr)
        return 2

    counts = doc.counts()
    supported = sum(count for name, count in counts.items() if name in SUPPORTED_ENTITY_TYPES)
    print(f"file: {file_path}")
    print(f"version: {doc.version}")
    print(f"total_entities: {len(doc.entities)}")
    print(f"supported_entities: {supported}")
    print(f"unsupported_entities: {len(doc.entities) - supported}")
    for dxftype, count in counts.items():
        print(f"{dxftype}: {count}")
    return 0


def _run_convert(
    input_path: str,
    output_path: str,
    *,
    source_crs: str,
    target_crs: str,
    segments: int,
    types: str | None = None,
    multi: bool = False,
    resolve_overlaps: bool = False,
    options: VisibilityOptions | None = None,
    closure_tolerance: float | None = None,
) -> int:
    dxf_path = Path(input_path)
    if not dxf_path.exists():
        print(f"error: file not found: {dxf_path}", file=sys.stderr)
        return 2

    def _postprocess(collection: Any) -> Any:
        if resolve_overlaps:
            collection = process_overlapping_polygons(collection, options)
        if multi:
            collection = to_multi_geometry(collection, closure_tolerance=closure_tolerance)
        return collection

    try:
        result = to_geojson_file(
            dxf_path,
            output_path,
            types=types,
            source_crs=source_crs,
            target_crs=target_crs,
            segments=segments,
            postprocess=_postprocess if (resolve_overlaps or multi) else None,
        )
    except Exception as exc:
        print(f"error: failed to convert DXF to GeoJSON: {exc}", file=sys.stderr)
        return 2

    print(f"input: {result.source_path}")
    print(f"output: {result.output_path}")
    print(f"total_entities: {result.total_entities}")
    print(f"written_features: {result.written_features}")
    print(f"skipped_entities: {result.skipped_entities}")
    for dxftype, count in result.skipped_by_type.items():
        print(f"skipped[{dxftype}]: {count}")
    if result.unprojected_points:
        print(f"unprojected_points: {result.unprojected_points}")
    return 0


def _run_resolve(
    input_path: str,
    output_path: str,
    *,
    options: VisibilityOptions,
    union: bool = False,
    flatten_parts: bool = False,
) -> int:
    geojson_path = Path(input_path)
    if not geojson_path.exists():
        print(f"error: file not found: {geojson_path}", file=sys.stderr)
        return 2

    try:
        collection = _load_json(geojson_path)
        input_count = len(collection.get("features") or [])
        collection = process_overlapping_polygons(collection, options)
        if union:
            merged = union_polygons(collection)
            collection = {**collection, "features": [merged]}
        if flatten_parts:
            collection = {**collection, "features": flatten(collection)["features"]}
        _dump_json(collection, Path(output_path))
    except Exception as exc:
        print(f"error: failed to resolve overlaps: {exc}", file=sys.stderr)
        return 2

    print(f"input: {geojson_path}")
    print(f"output: {output_path}")
    print(f"input_features: {input_count}")
    print(f"output_features: {len(collection.get('features') or [])}")
    return 0


def _load_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _dump_json(data: Any, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, str(level_name).upper(), logging.WARNING)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: Sequence[str] | None = None) -> int:
    settings = Settings.from_env()
    parser = _build_parser(settings)
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    if args.command == "inspect":
        return _run_inspect(args.path)
    if args.command == "convert":
        return _run_convert(
            args.input_path,
            args.output_path,
            source_crs=args.source_crs,
            target_crs=args.target_crs,
            segments=args.segments,
            types=args.types,
            multi=bool(args.multi),
            resolve_overlaps=bool(args.resolve_overlaps),
            options=VisibilityOptions(
                min_covered_pct=float(args.min_covered_pct),
                clip_remainder=not bool(args.no_clip),
            ),
            closure_tolerance=settings.closure_tolerance,
        )
    if args.command == "resolve":
        return _run_resolve(
            args.input_path,
            args.output_path,
            options=VisibilityOptions(
                order_by=str(args.order_by),
                min_covered_pct=float(args.min_covered_pct),
                clip_remainder=not bool(args.no_clip),
            ),
            union=bool(args.union),
            flatten_parts=bool(args.flatten),
        )

    parser.print_help()
    return 0
