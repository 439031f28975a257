"""
Geometry validation for areal units.

This module coerces the polygon and coordinate inputs accepted by the
neighbor-graph builders into shapely geometries and numpy arrays, reporting
malformed input as GeometryError.
"""
import logging
from typing import Any, Hashable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import geopandas as gpd
import shapely
from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

from spatial_autocorrelation.core.exceptions import GeometryError

logger = logging.getLogger(__name__)


def _ring_from_coordinates(coords: Any, index: int) -> Polygon:
    """Build a polygon from a raw vertex sequence, open or closed."""
    try:
        arr = np.asarray(coords, dtype=float)
    except (TypeError, ValueError) as e:
        raise GeometryError(f"Unit {index}: vertices are not numeric ({e})") from e

    if arr.ndim != 2 or arr.shape[1] != 2:
        raise GeometryError(f"Unit {index}: expected an (m, 2) vertex array, got shape {arr.shape}")
    if not np.isfinite(arr).all():
        raise GeometryError(f"Unit {index}: vertices contain NaN or infinite values")

    if len(arr) > 1 and np.array_equal(arr[0], arr[-1]):
        arr = arr[:-1]
    if len(np.unique(arr, axis=0)) < 3:
        raise GeometryError(f"Unit {index}: a polygon needs at least 3 distinct vertices")

    return Polygon(arr)


def _check_polygon(polygon: Polygon, index: int) -> None:
    # Closed rings repeat the first vertex
    n_vertices = len(np.unique(np.asarray(polygon.exterior.coords)[:-1], axis=0))
    if n_vertices < 3:
        raise GeometryError(f"Unit {index}: a polygon needs at least 3 distinct vertices")
    if polygon.area <= 0.0:
        raise GeometryError(f"Unit {index}: polygon has zero area")


def as_polygon(obj: Any, index: int) -> BaseGeometry:
    """
    Validate a single areal unit geometry.

    Args:
        obj: Shapely Polygon or MultiPolygon, or an (m, 2) vertex sequence.
        index: Position of the unit, used in error messages.

    Returns:
        The validated shapely geometry.

    Raises:
        GeometryError: If the geometry is missing, empty, of the wrong type or degenerate.
    """
    if obj is None:
        raise GeometryError(f"Unit {index}: geometry is missing")

    try:
        geom = obj if isinstance(obj, BaseGeometry) else _ring_from_coordinates(obj, index)
    except (GEOSException, ValueError) as e:
        raise GeometryError(f"Unit {index}: invalid polygon ({e})") from e

    if geom.is_empty:
        raise GeometryError(f"Unit {index}: geometry is empty")

    if isinstance(geom, Polygon):
        _check_polygon(geom, index)
    elif isinstance(geom, MultiPolygon):
        for part in geom.geoms:
            _check_polygon(part, index)
    else:
        raise GeometryError(f"Unit {index}: expected a polygon, got {geom.geom_type}")

    if not geom.is_valid:
        logger.warning(f"Unit {index}: polygon is not valid ({shapely.is_valid_reason(geom)})")

    return geom


def coerce_polygons(
    polygons: Any, ids: Optional[Sequence[Hashable]] = None
) -> Tuple[np.ndarray, Optional[List[Hashable]]]:
    """
    Convert polygon input into an array of validated shapely geometries.

    Args:
        polygons: GeoDataFrame, GeoSeries, or a sequence of polygons / vertex arrays.
        ids: Unit labels. Defaults to the index of a GeoDataFrame or GeoSeries.

    Returns:
        Tuple of (geometry array, labels or None).

    Raises:
        GeometryError: If any unit geometry is malformed.
    """
    if isinstance(polygons, gpd.GeoDataFrame):
        if ids is None:
            ids = list(polygons.index)
        polygons = polygons.geometry
    if isinstance(polygons, (gpd.GeoSeries, pd.Series)):
        if ids is None:
            ids = list(polygons.index)
        polygons = list(polygons)

    geoms = [as_polygon(obj, i) for i, obj in enumerate(polygons)]
    if not geoms:
        raise GeometryError("No polygons supplied")

    arr = np.empty(len(geoms), dtype=object)
    arr[:] = geoms
    return arr, (list(ids) if ids is not None else None)


def coerce_coordinates(coords: Any) -> np.ndarray:
    """
    Convert centroid input into a finite (N, 2) float array.

    Args:
        coords: (N, 2) array-like, a GeoSeries/GeoDataFrame of points, or a
            sequence of shapely points.

    Raises:
        GeometryError: If the coordinates are not a finite two-column array.
    """
    if isinstance(coords, gpd.GeoDataFrame):
        coords = coords.geometry
    elif isinstance(coords, pd.DataFrame):
        coords = coords.to_numpy()
    if isinstance(coords, gpd.GeoSeries):
        if not (coords.geom_type == 'Point').all():
            raise GeometryError("Distance-based neighbors need point geometries (use polygon_centroids)")
        arr = np.column_stack([coords.x.to_numpy(), coords.y.to_numpy()])
    elif len(coords) and isinstance(coords[0], BaseGeometry):
        arr = shapely.get_coordinates(np.asarray(coords, dtype=object))
        if len(arr) != len(coords):
            raise GeometryError("Every unit must be a single point")
    else:
        try:
            arr = np.asarray(coords, dtype=float)
        except (TypeError, ValueError) as e:
            raise GeometryError(f"Coordinates are not numeric ({e})") from e

    if arr.ndim != 2 or arr.shape[1] != 2:
        raise GeometryError(f"Coordinates must have shape (N, 2), got {arr.shape}")
    if arr.shape[0] == 0:
        raise GeometryError("No coordinates supplied")
    if not np.isfinite(arr).all():
        raise GeometryError("Coordinates contain NaN or infinite values")
    return arr


def polygon_centroids(polygons: Any) -> np.ndarray:
    """Centroid coordinates of validated polygons as an (N, 2) array."""
    geoms, _ = coerce_polygons(polygons)
    return shapely.get_coordinates(shapely.centroid(geoms))
