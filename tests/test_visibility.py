from __future__ import annotations

import pytest
from shapely.geometry import shape

import dxfgeo.visibility as visibility_module
from dxfgeo.visibility import (
    VisibilityOptions,
    add_z_index,
    keep_top_visible,
    process_overlapping_polygons,
)
from tests._dxf_helpers import line, square


def _rect(x0: float, y0: float, x1: float, y1: float, **properties):
    ring = [[x0, y0], [x1, y0], [x1, y1], [x0, y1], [x0, y0]]
    return {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [ring]},
        "properties": dict(properties),
    }


def _collection(*features):
    return {"type": "FeatureCollection", "features": list(features)}


def _names(collection):
    return [f["properties"]["name"] for f in collection["features"]]


def test_lower_polygon_keeps_visible_remainder() -> None:
    a = square(0, 0, name="A", z=2)
    b = square(0.5, 0.5, name="B", z=1)

    result = keep_top_visible(_collection(b, a))

    assert _names(result) == ["A", "B"]
    top, lower = result["features"]
    assert shape(top["geometry"]).area == pytest.approx(1.0)
    assert shape(lower["geometry"]).area == pytest.approx(0.75)
    assert lower["properties"] == {"name": "B", "z": 1}


def test_coverage_accumulates_over_several_polygons() -> None:
    base = _rect(0, 0, 2, 1, name="base", z=1)
    left = _rect(0, 0, 0.8, 1, name="left", z=3)
    right = _rect(1.2, 0, 2, 1, name="right", z=2)

    result = keep_top_visible(_collection(base, left, right))

    # 40% + 40% covered once both are applied.
    assert _names(result) == ["left", "right"]


def test_coverage_threshold_is_inclusive() -> None:
    a = _rect(0, 0, 1, 1, name="A", z=2)
    b = _rect(0.75, 0, 1.75, 1, name="B", z=1)

    dropped = keep_top_visible(_collection(a, b), min_covered_pct=25.0)
    kept = keep_top_visible(_collection(a, b), min_covered_pct=25.000001)

    assert _names(dropped) == ["A"]
    assert _names(kept) == ["A", "B"]
    assert shape(kept["features"][1]["geometry"]).area == pytest.approx(0.75)


def test_fully_hidden_polygon_is_dropped() -> None:
    a = square(0, 0, size=4, name="A", z=2)
    b = square(1, 1, name="B", z=1)

    result = keep_top_visible(_collection(a, b), min_covered_pct=100.0)

    assert _names(result) == ["A"]


def test_hidden_polygon_still_clips_lower_ones() -> None:
    a = _rect(0, 0, 1, 1, name="A", z=3)
    b = _rect(0.5, 0, 1.5, 1, name="B", z=2)
    c = _rect(0, 0, 3, 1, name="C", z=1)

    result = keep_top_visible(_collection(a, b, c), min_covered_pct=40.0)

    # B is 50% under A and dropped; C is a third under A and half under A and B.
    assert _names(result) == ["A"]


def test_disjoint_polygons_skip_difference(monkeypatch) -> None:
    calls = []

    def _counting_difference(a, b):
        calls.append((a, b))
        return a.difference(b)

    monkeypatch.setattr(visibility_module, "_difference", _counting_difference)

    result = keep_top_visible(
        _collection(square(0, 0, name="A", z=2), square(10, 10, name="B", z=1))
    )

    assert _names(result) == ["A", "B"]
    assert calls == []


def test_touching_polygons_are_both_kept() -> None:
    result = keep_top_visible(
        _collection(_rect(0, 0, 1, 1, name="A", z=2), _rect(1, 0, 2, 1, name="B", z=1))
    )

    assert _names(result) == ["A", "B"]
    assert shape(result["features"][1]["geometry"]).area == pytest.approx(1.0)


def test_failed_difference_is_skipped(monkeypatch) -> None:
    def _broken_difference(a, b):
        raise RuntimeError("topology exception")

    monkeypatch.setattr(visibility_module, "_difference", _broken_difference)

    result = keep_top_visible(
        _collection(square(0, 0, name="A", z=2), square(0.5, 0.5, name="B", z=1))
    )

    assert _names(result) == ["A", "B"]
    assert shape(result["features"][1]["geometry"]).area == pytest.approx(1.0)


def test_malformed_polygon_is_kept_unchanged() -> None:
    broken = {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [1, 1]]]},
        "properties": {"name": "broken", "z": 5},
    }

    result = keep_top_visible(_collection(broken, square(0, 0, name="A", z=1)))

    assert result["features"][0] is broken
    assert _names(result) == ["broken", "A"]
    assert shape(result["features"][1]["geometry"]).area == pytest.approx(1.0)


def test_non_polygon_features_are_ignored() -> None:
    result = keep_top_visible(_collection(line([[0, 0], [1, 1]], name="L"), square(0, 0, name="A")))

    assert _names(result) == ["A"]


def test_no_clip_returns_original_features() -> None:
    a = square(0, 0, name="A", z=2)
    b = square(0.5, 0.5, name="B", z=1)

    result = keep_top_visible(_collection(a, b), VisibilityOptions(clip_remainder=False))

    assert result["features"][0] is a
    assert result["features"][1] is b


def test_equal_keys_keep_input_order() -> None:
    first = square(0, 0, name="first", z=1)
    second = square(0, 0, name="second", z=1)

    result = keep_top_visible(_collection(first, second))

    assert _names(result) == ["first"]


def test_missing_or_invalid_key_sorts_as_zero() -> None:
    low = square(0, 0, name="low", z="n/a")
    high = square(0, 0, name="high", z=0.5)

    result = keep_top_visible(_collection(low, high))

    assert _names(result) == ["high"]


def test_feature_id_is_preserved() -> None:
    a = square(0, 0, name="A", z=2)
    b = square(0.5, 0.5, name="B", z=1)
    b["id"] = "room-7"

    result = keep_top_visible(_collection(a, b))

    assert result["features"][1]["id"] == "room-7"


def test_camel_case_options_are_accepted() -> None:
    a = square(0, 0, name="A", rank=2)
    b = square(0.5, 0.5, name="B", rank=1)

    result = keep_top_visible(_collection(b, a), {"orderBy": "rank", "minCoveredPct": 20})

    assert _names(result) == ["A"]


def test_unknown_option_is_rejected() -> None:
    with pytest.raises(TypeError):
        keep_top_visible(_collection(), {"minimum": 3})


def test_geodesic_area_option() -> None:
    a = square(77.0, 12.0, size=0.01, name="A", z=2)
    b = square(77.005, 12.005, size=0.01, name="B", z=1)

    result = keep_top_visible(_collection(a, b), geodesic=True)

    assert _names(result) == ["A", "B"]


def test_add_z_index_counts_down_from_length() -> None:
    stamped = add_z_index([square(0, 0), square(1, 1), square(2, 2)])

    assert [f["properties"]["z"] for f in stamped] == [3, 2, 1]
    assert [f["properties"]["z"] for f in add_z_index([square(0, 0)], start_z=10)] == [10]


def test_process_overlapping_polygons_uses_input_order() -> None:
    top = square(0, 0, name="top")
    under = square(0.5, 0.5, name="under")
    source = _collection(top, line([[0, 0], [3, 3]], name="L"), under)
    source["crs"] = {"type": "name", "properties": {"name": "EPSG:4326"}}

    result = process_overlapping_polygons(source)

    assert _names(result) == ["top", "under"]
    assert [f["properties"]["z"] for f in result["features"]] == [2, 1]
    assert result["crs"] == source["crs"]
    assert shape(result["features"][1]["geometry"]).area == pytest.approx(0.75)


def test_process_overlapping_polygons_honours_existing_keys() -> None:
    lower = square(0, 0, name="lower", z=1)
    upper = square(0.5, 0.5, name="upper", z=9)

    result = process_overlapping_polygons(_collection(lower, upper))

    assert _names(result) == ["upper", "lower"]


def test_process_overlapping_polygons_passes_through_edge_inputs() -> None:
    empty = _collection()
    lines_only = _collection(line([[0, 0], [1, 1]]))

    assert process_overlapping_polygons(empty) is empty
    assert process_overlapping_polygons(lines_only) is lines_only
    assert process_overlapping_polygons(None) is None


@pytest.mark.parametrize("clip_remainder", [True, False])
def test_identical_stack_keeps_only_the_top(clip_remainder: bool) -> None:
    stack = [square(0, 0, name=f"layer-{z}", z=z) for z in (4, 3, 2, 1)]

    result = keep_top_visible(_collection(*stack), clip_remainder=clip_remainder)

    (top,) = result["features"]
    assert top["properties"] == {"name": "layer-4", "z": 4}
    assert shape(top["geometry"]).area == pytest.approx(1.0)
    if not clip_remainder:
        assert top is stack[0]
