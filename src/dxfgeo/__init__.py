from typing import Sequence

from .config import Settings
from .convert import (
    ConvertResult,
    convert_dxf_buffer,
    convert_entities,
    entity_to_feature,
    parse_dxf_to_geojson,
    to_geojson,
    to_geojson_file,
)
from .document import Document, DXFParseError, read, readbytes, readstr
from .merge import to_multi_geometry
from .ops import flatten, union_polygons
from .projection import Projector
from .visibility import (
    VisibilityOptions,
    add_z_index,
    keep_top_visible,
    process_overlapping_polygons,
)

__all__ = [
    "read",
    "readstr",
    "readbytes",
    "Document",
    "DXFParseError",
    "Projector",
    "Settings",
    "to_geojson",
    "to_geojson_file",
    "parse_dxf_to_geojson",
    "convert_dxf_buffer",
    "convert_entities",
    "entity_to_feature",
    "ConvertResult",
    "to_multi_geometry",
    "keep_top_visible",
    "add_z_index",
    "process_overlapping_polygons",
    "VisibilityOptions",
    "union_polygons",
    "flatten",
]


def main(argv: Sequence[str] | None = None) -> int:
    from dxfgeo.cli import main as cli_main

    return cli_main(argv)
