import asyncio
import logging

import pytest

from conftest import ORIGIN, FixedRng, StraightProvider, make_order, make_queue
from shiptrack.errors import InvalidOrderInputError, InvalidSpeedError, UnknownCarrierError
from shiptrack.services.routing.planner import MultiRoutePlanner

NEAR_A = (116.50, 40.00)
NEAR_B = (116.60, 40.10)
SHANGHAI = (121.47, 31.23)


def _planner(provider=None, factor=1.0) -> MultiRoutePlanner:
    return MultiRoutePlanner(make_queue(provider or StraightProvider()), rng=FixedRng(factor))


def _speed_lookup(name):
    return {"SF Express": 0.5, "Fast Co": 1.0, "Broken": 1.5}.get(name)


def test_cluster_orders_groups_by_radius():
    orders = [make_order("a", NEAR_A), make_order("c", SHANGHAI), make_order("b", NEAR_B)]

    clusters = _planner().cluster_orders(orders)

    assert [[o.id for o in cluster] for cluster in clusters] == [["a", "b"], ["c"]]


def test_cluster_orders_is_deterministic():
    orders = [make_order(str(i), (116.0 + i * 0.5, 39.0)) for i in range(8)]
    planner = _planner()

    first = [[o.id for o in c] for c in planner.cluster_orders(orders)]
    second = [[o.id for o in c] for c in planner.cluster_orders(orders)]

    assert first == second


def test_sort_orders_in_cluster_nearest_neighbour():
    far = make_order("far", NEAR_B)
    near = make_order("near", NEAR_A)

    ordered = _planner().sort_orders_in_cluster([far, near], ORIGIN)

    assert [o.id for o in ordered] == ["near", "far"]


def test_plan_routes_stitches_segments_and_extracts_prefixes():
    provider = StraightProvider(steps=5)
    orders = [make_order("far", NEAR_B), make_order("near", NEAR_A)]

    plans = asyncio.run(_planner(provider).plan_routes_for_orders(orders, _speed_lookup))

    # legs fetched in nearest-neighbour order
    assert provider.calls == [(ORIGIN, NEAR_A), (NEAR_A, NEAR_B)]
    near, far = plans["near"], plans["far"]
    assert len(near.points) == 5
    assert len(far.points) == 9
    assert far.points[:5] == near.points
    assert near.points[-1] == NEAR_A
    assert far.points[-1] == NEAR_B
    assert near.time_array == far.time_array[:5]
    assert far.time_array[0] == 0
    assert all(b >= a for a, b in zip(far.time_array, far.time_array[1:]))
    assert far.total_time_seconds == far.time_array[-1]


def test_plan_routes_applies_speed_and_factor():
    slow_orders = [make_order("s", NEAR_A, logistics="SF Express")]
    fast_orders = [make_order("f", NEAR_A, logistics="Fast Co")]

    slow = asyncio.run(_planner(factor=1.1).plan_routes_for_orders(slow_orders, _speed_lookup))["s"]
    fast = asyncio.run(_planner(factor=1.0).plan_routes_for_orders(fast_orders, _speed_lookup))["f"]

    for base, scaled in zip(fast.time_array, slow.time_array):
        assert scaled == pytest.approx(base / 0.5 * 1.1)


def test_plan_routes_empty_input():
    assert asyncio.run(_planner().plan_routes_for_orders([], _speed_lookup)) == {}


@pytest.mark.parametrize(
    "orders, error",
    [
        ([make_order("x", (float("nan"), 40.0))], InvalidOrderInputError),
        ([make_order("x", (2.35, 48.85))], InvalidOrderInputError),
        ([make_order("x", NEAR_A), make_order("y", NEAR_B, origin=(121.0, 31.0))], InvalidOrderInputError),
        ([make_order("x", NEAR_A, logistics="Nobody")], UnknownCarrierError),
        ([make_order("x", NEAR_A, logistics="Broken")], InvalidSpeedError),
    ],
)
def test_plan_routes_rejects_invalid_input(orders, error):
    with pytest.raises(error):
        asyncio.run(_planner().plan_routes_for_orders(orders, _speed_lookup))


def test_extract_order_route_warns_when_far(caplog):
    planner = _planner()
    points = [(116.0, 39.0), (116.1, 39.1)]

    with caplog.at_level(logging.WARNING):
        info = planner.extract_order_route(points, [0.0, 10.0], (121.47, 31.23))

    assert info.points == points
    assert "km from destination" in caplog.text
