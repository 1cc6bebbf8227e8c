import asyncio

import httpx
import pytest

from shiptrack.errors import RoutingProviderError
from shiptrack.services.routing.amap_client import AmapClient, check_health, parse_polyline, parse_steps

ROUTE_RESPONSE = {
    "status": "1",
    "info": "OK",
    "route": {
        "paths": [
            {
                "steps": [
                    {"polyline": "116.40,39.90;116.41,39.91", "duration": "60"},
                    {"polyline": "", "duration": "30"},
                    {"polyline": "116.41,39.91;116.42,39.92", "duration": "120"},
                ]
            }
        ]
    },
}


def _client(handler) -> AmapClient:
    return AmapClient(api_key="test-key", base_url="https://amap.test/v3", transport=httpx.MockTransport(handler))


def test_parse_polyline_skips_malformed_tokens():
    assert parse_polyline("116.1,39.1;bad;116.2,39.2;1,2,3") == [(116.1, 39.1), (116.2, 39.2)]


def test_parse_steps_folds_duration_without_polyline():
    points, times = parse_steps(ROUTE_RESPONSE["route"]["paths"][0]["steps"])

    assert points == [(116.40, 39.90), (116.41, 39.91), (116.42, 39.92)]
    assert times == [0.0, 90.0, 210.0]


def test_route_success_sends_expected_params():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        seen["path"] = request.url.path
        return httpx.Response(200, json=ROUTE_RESPONSE)

    points, times = asyncio.run(_client(handler).route((116.40, 39.90), (116.42, 39.92)))

    assert seen["path"] == "/v3/direction/driving"
    assert seen["origin"] == "116.4,39.9"
    assert seen["destination"] == "116.42,39.92"
    assert seen["key"] == "test-key"
    assert len(points) == len(times) == 3


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"status": "0", "info": "INVALID_USER_KEY"}),
        httpx.Response(200, json={"status": "1", "route": {"paths": []}}),
        httpx.Response(200, json={"status": "1", "route": {"paths": [{"steps": [{"polyline": "116.4,39.9"}]}]}}),
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="not json"),
    ],
)
def test_route_failures_raise_provider_error(response):
    client = _client(lambda request: response)

    with pytest.raises(RoutingProviderError):
        asyncio.run(client.route((116.40, 39.90), (116.42, 39.92)))


def test_unconfigured_key_fails_without_network():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=ROUTE_RESPONSE)

    client = AmapClient(api_key="", transport=httpx.MockTransport(handler))

    with pytest.raises(RoutingProviderError):
        asyncio.run(client.route((116.40, 39.90), (116.42, 39.92)))
    assert calls == []
    assert asyncio.run(check_health(client)) is False


def test_network_error_is_wrapped():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RoutingProviderError):
        asyncio.run(_client(handler).route((116.40, 39.90), (116.42, 39.92)))
