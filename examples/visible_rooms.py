import json

import dxfgeo


def main() -> None:
    collection = dxfgeo.to_geojson("examples/data/site_plan.dxf", source_crs="EPSG:32644")

    # First polygon in the drawing is on top.
    visible = dxfgeo.process_overlapping_polygons(collection, min_covered_pct=80.0)
    print(f"visible polygons: {len(visible['features'])}")

    merged = dxfgeo.to_multi_geometry(visible)
    with open("/tmp/site_plan_visible.geojson", "w", encoding="utf-8") as fh:
        json.dump(merged, fh)
    print("saved: /tmp/site_plan_visible.geojson")


if __name__ == "__main__":
    main()
