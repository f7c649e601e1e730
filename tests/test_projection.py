from __future__ import annotations

import math

import dxfgeo.projection as projection_module
from dxfgeo.projection import Projector, project_xy


def test_identity_projector_returns_input() -> None:
    projector = Projector.identity()

    assert projector.is_identity
    assert projector.project(123.5, -4.0) == (123.5, -4.0)
    assert projector.failures == 0


def test_utm_zone_44_central_meridian() -> None:
    lon, lat = Projector("EPSG:32644", "EPSG:4326").project(500000.0, 0.0)

    assert math.isclose(lon, 81.0, abs_tol=1e-6)
    assert math.isclose(lat, 0.0, abs_tol=1e-6)


def test_project_xy_uses_default_crs_pair() -> None:
    lon, lat = project_xy(500000.0, 1000000.0)

    assert math.isclose(lon, 81.0, abs_tol=1e-6)
    assert 8.0 < lat < 10.0


def test_invalid_crs_falls_back_to_input() -> None:
    projector = Projector("EPSG:not-a-code", "EPSG:4326")

    assert projector.project(10.0, 20.0) == (10.0, 20.0)
    assert projector.project(11.0, 21.0) == (11.0, 21.0)
    assert projector.failures == 2


def test_transform_error_falls_back_to_input(monkeypatch) -> None:
    class _FailingTransformer:
        def transform(self, x, y, errcheck=False):
            raise RuntimeError("datum grid missing")

    monkeypatch.setattr(projection_module, "_transformer", lambda _src, _dst: _FailingTransformer())

    projector = Projector("EPSG:32644", "EPSG:4326")

    assert projector.project(1.0, 2.0) == (1.0, 2.0)
    assert projector.failures == 1


def test_non_finite_transform_result_falls_back(monkeypatch) -> None:
    class _InfTransformer:
        def transform(self, x, y, errcheck=False):
            return (float("inf"), float("inf"))

    monkeypatch.setattr(projection_module, "_transformer", lambda _src, _dst: _InfTransformer())

    projector = Projector("EPSG:32644", "EPSG:4326")

    assert projector.project(5.0, 6.0) == (5.0, 6.0)
    assert projector.failures == 1
