"""Export roof geometry as WKT, dicts and GeoJSON."""

from .wkt import to_wkt, polygon_to_wkt, parse_wkt_linestring, parse_wkt_polygon, result_to_wkt
from .geojson import result_to_dict, result_to_geojson, write_geojson

__all__ = [
    "to_wkt",
    "polygon_to_wkt",
    "parse_wkt_linestring",
    "parse_wkt_polygon",
    "result_to_wkt",
    "result_to_dict",
    "result_to_geojson",
    "write_geojson",
]
