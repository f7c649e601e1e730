import dxfgeo


def main() -> None:
    result = dxfgeo.to_geojson_file(
        "examples/data/site_plan.dxf",
        "/tmp/site_plan.geojson",
        source_crs="EPSG:32644",
        types="LWPOLYLINE POLYLINE CIRCLE",
    )
    print(result)


if __name__ == "__main__":
    main()
