import math

import pytest

from shiptrack.errors import InvalidCoordinateError
from shiptrack.services.geospatial import (
    ValidityEnvelope,
    haversine_km,
    interpolate_line,
    nearest_point_index,
    path_distance_km,
    require_finite_coordinate,
)


def test_haversine_known_distances():
    assert haversine_km(39.9, 116.4, 39.9, 116.4) == 0
    # Beijing to Shanghai
    assert haversine_km(39.9042, 116.4074, 31.2304, 121.4737) == pytest.approx(1067, abs=10)
    assert haversine_km(0, 0, 10, 10) == pytest.approx(haversine_km(10, 10, 0, 0))


def test_envelope_accepts_mainland_points_only():
    envelope = ValidityEnvelope()

    assert envelope.contains((116.40, 39.90))
    assert envelope.contains((73.0, 18.0))
    assert not envelope.contains((0.0, 0.0))
    assert not envelope.contains((-74.0, 40.7))
    assert not envelope.contains((math.nan, 39.9))
    assert not envelope.contains((math.inf, 39.9))


def test_interpolate_line_keeps_exact_endpoints():
    points = interpolate_line((116.40, 39.90), (116.50, 40.00), 20)

    assert len(points) == 20
    assert points[0] == (116.40, 39.90)
    assert points[-1] == (116.50, 40.00)
    assert path_distance_km(points) == pytest.approx(haversine_km(39.90, 116.40, 40.00, 116.50), rel=1e-3)


def test_require_finite_coordinate_rejects_garbage():
    assert require_finite_coordinate([116, 39]) == (116.0, 39.0)
    for bad in (None, (1,), ("a", "b"), (math.nan, 1.0), (True, 1.0)):
        with pytest.raises(InvalidCoordinateError):
            require_finite_coordinate(bad)


def test_nearest_point_index():
    points = [(116.0, 39.0), (116.5, 39.5), (117.0, 40.0)]
    index, distance = nearest_point_index(points, (116.49, 39.51))

    assert index == 1
    assert distance < 2
