from __future__ import annotations

import io
import math
from pathlib import Path
from typing import Any, Callable, Sequence

import ezdxf


def build_dxf_text(build: Callable[[Any], None], dxf_version: str = "R2010") -> str:
    doc = ezdxf.new(dxfversion=dxf_version)
    build(doc.modelspace())
    stream = io.StringIO()
    doc.write(stream)
    return stream.getvalue()


def write_dxf(path: Path, build: Callable[[Any], None]) -> Path:
    path.write_text(build_dxf_text(build), encoding="utf-8")
    return path


def square(x0: float, y0: float, size: float = 1.0, **properties: Any) -> dict[str, Any]:
    ring = [
        [x0, y0],
        [x0 + size, y0],
        [x0 + size, y0 + size],
        [x0, y0 + size],
        [x0, y0],
    ]
    return {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [ring]},
        "properties": dict(properties),
    }


def line(coords: Sequence[Sequence[float]], **properties: Any) -> dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": {"type": "LineString", "coordinates": [list(p) for p in coords]},
        "properties": dict(properties),
    }


def pair_close(
    actual: Sequence[float],
    expected: Sequence[float],
    eps: float = 1e-9,
) -> bool:
    return math.isclose(actual[0], expected[0], abs_tol=eps) and math.isclose(
        actual[1], expected[1], abs_tol=eps
    )
