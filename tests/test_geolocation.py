import httpx

from lms_admin.core.config import Settings
from lms_admin.services.geolocation import GeolocationClient


def _client(handler, **settings):
    calls = []

    def recording(request):
        calls.append(request)
        return handler(request)

    geo = GeolocationClient(Settings(**settings), transport=httpx.MockTransport(recording))
    return geo, calls


async def test_private_ip_never_calls_out():
    geo, calls = _client(lambda r: httpx.Response(200, json={}))

    loc = await geo.lookup("192.168.1.5")

    assert calls == []
    assert loc.city == "Private Network"
    assert loc.country == "Local Network"
    assert loc.label() == "Local Network"


async def test_loopback_placeholder():
    geo, calls = _client(lambda r: httpx.Response(200, json={}))

    loc = await geo.lookup("127.0.0.1")

    assert calls == []
    assert loc.city == "Localhost"
    assert loc.country == "Local Machine"


async def test_public_ip_lookup():
    payload = {
        "status": "success",
        "city": "Quezon City",
        "regionName": "Metro Manila",
        "country": "Philippines",
        "countryCode": "PH",
        "lat": 14.676,
        "lon": 121.0437,
        "timezone": "Asia/Manila",
        "isp": "PLDT",
    }
    geo, calls = _client(lambda r: httpx.Response(200, json=payload))

    loc = await geo.lookup("8.8.8.8")

    assert len(calls) == 1
    assert "8.8.8.8" in str(calls[0].url)
    assert loc.label() == "Quezon City, Metro Manila, Philippines"
    assert loc.country_code == "PH"


async def test_failed_status_gives_empty_location():
    geo, _ = _client(lambda r: httpx.Response(200, json={"status": "fail", "message": "quota"}))

    loc = await geo.lookup("8.8.8.8")

    assert loc.city is None
    assert loc.label() == "Unknown Location"


async def test_http_error_and_bad_json_are_swallowed():
    geo, _ = _client(lambda r: httpx.Response(503))
    assert (await geo.lookup("8.8.8.8")).country is None

    geo, _ = _client(lambda r: httpx.Response(200, content=b"<html>"))
    assert (await geo.lookup("8.8.8.8")).country is None


async def test_timeout_is_swallowed():
    def boom(request):
        raise httpx.ReadTimeout("slow", request=request)

    geo, _ = _client(boom)

    assert (await geo.lookup("1.1.1.1")).city is None


async def test_disabled_lookup_skips_network():
    geo, calls = _client(lambda r: httpx.Response(200, json={}), geolocation_enabled=False)

    loc = await geo.lookup("8.8.8.8")

    assert calls == []
    assert loc.label() == "Unknown Location"
