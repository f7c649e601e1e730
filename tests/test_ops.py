from __future__ import annotations

import pytest
from shapely.geometry import shape

from dxfgeo.ops import clean_collection, flatten, union_polygons
from tests._dxf_helpers import line, square


def _collection(*features):
    return {"type": "FeatureCollection", "features": list(features)}


def test_union_dissolves_overlapping_polygons() -> None:
    merged = union_polygons(_collection(square(0, 0), square(0.5, 0.5), line([[0, 0], [5, 5]])))

    assert merged["type"] == "Feature"
    assert merged["geometry"]["type"] == "Polygon"
    assert shape(merged["geometry"]).area == pytest.approx(1.75)


def test_union_of_disjoint_polygons_is_multi() -> None:
    merged = union_polygons(_collection(square(0, 0), square(5, 5)))

    assert merged["geometry"]["type"] == "MultiPolygon"
    assert shape(merged["geometry"]).area == pytest.approx(2.0)


def test_union_of_single_polygon_returns_it() -> None:
    only = square(0, 0, name="only")

    assert union_polygons(_collection(only)) is only


def test_union_without_polygons_raises() -> None:
    with pytest.raises(ValueError, match="no polygon"):
        union_polygons(_collection(line([[0, 0], [1, 1]])))


def test_flatten_explodes_multi_parts() -> None:
    multi = {
        "type": "Feature",
        "geometry": {
            "type": "MultiPolygon",
            "coordinates": [
                square(0, 0)["geometry"]["coordinates"],
                square(3, 3)["geometry"]["coordinates"],
            ],
        },
        "properties": {"layer": "ROOMS"},
    }
    single = line([[0, 0], [1, 1]])

    flat = flatten(_collection(multi, single))

    assert [f["geometry"]["type"] for f in flat["features"]] == ["Polygon", "Polygon", "LineString"]
    assert flat["features"][1]["properties"] == {"layer": "ROOMS"}
    assert flat["features"][2] is single


def test_clean_collection_removes_duplicate_positions() -> None:
    dirty = line([[0, 0], [0, 0], [1, 1]])
    collapsed = line([[2, 2], [2, 2]])

    cleaned = clean_collection(_collection(dirty, collapsed))

    assert cleaned["features"][0]["geometry"]["coordinates"] == [[0, 0], [1, 1]]
    assert cleaned["features"][1] is collapsed
