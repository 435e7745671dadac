import httpx
import pytest

from ups_client import UPSClient, UPSError, build_locator_request, transform_locations


def make_client(handler):
    http = httpx.Client(base_url="https://ups.test", transport=httpx.MockTransport(handler))
    return UPSClient(base_url="https://ups.test", client_id="id", client_secret="secret",
                     merchant_id="999", http=http)


def token_response():
    return httpx.Response(200, json={"access_token": "tok", "expires_in": "14399"})


def test_token_is_fetched_once_and_reused():
    seen = []

    def handler(request):
        seen.append(request)
        if request.url.path == "/security/v1/oauth/token":
            return token_response()
        return httpx.Response(200, json={"ShipmentResponse": {}})

    ups = make_client(handler)
    ups.create_shipment({"ShipmentRequest": {}})
    ups.create_shipment({"ShipmentRequest": {}})

    paths = [r.url.path for r in seen]
    assert paths.count("/security/v1/oauth/token") == 1
    assert paths.count("/api/shipments/v2403/ship") == 2

    token_request = seen[0]
    assert token_request.headers["x-merchant-id"] == "999"
    assert token_request.headers["authorization"].startswith("Basic ")
    assert b"grant_type=client_credentials" in token_request.content

    ship_request = seen[1]
    assert ship_request.headers["authorization"] == "Bearer tok"
    assert ship_request.headers["transactionSrc"] == "testing"
    assert ship_request.headers["transId"]
    assert ship_request.url.params["additionaladdressvalidation"] == "1"


def test_error_status_raises_with_flattened_details():
    def handler(request):
        if request.url.path == "/security/v1/oauth/token":
            return token_response()
        return httpx.Response(400, json={"response": {"errors": [
            {"code": "120120", "message": "ShipperNumber must be the same as shipper country"}]}})

    with pytest.raises(UPSError) as exc:
        make_client(handler).create_pickup({})

    assert exc.value.status_code == 400
    assert exc.value.details == "120120: ShipperNumber must be the same as shipper country"
    assert exc.value.payload["response"]["errors"][0]["code"] == "120120"


def test_transport_failure_becomes_ups_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UPSError) as exc:
        make_client(handler).get_token()
    assert exc.value.status_code == 500


def test_pickup_status_sends_account_number():
    seen = {}

    def handler(request):
        if request.url.path == "/security/v1/oauth/token":
            return token_response()
        seen["request"] = request
        return httpx.Response(200, json={"PickupPendingStatusResponse": {}})

    make_client(handler).pickup_status("2929AONCALL", "A1B2C3")

    assert seen["request"].url.path == "/api/shipments/v2409/pickup/2929AONCALL"
    assert seen["request"].headers["AccountNumber"] == "A1B2C3"


def test_search_locations_uses_given_token():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"LocatorResponse": {}})

    make_client(handler).search_locations(build_locator_request("1 Main St", "Austin", "TX", "78701"),
                                          access_token="given")

    assert len(seen) == 1
    assert seen[0].headers["authorization"] == "Bearer given"
    assert seen[0].url.params["Locale"] == "en_US"


def test_locator_request_shape():
    req = build_locator_request("1 Main St", "Austin", "TX", "78701", "US")["LocatorRequest"]
    address = req["OriginAddress"]["AddressKeyFormat"]

    assert address["PoliticalDivision2"] == "Austin"
    assert address["PoliticalDivision1"] == "TX"
    assert address["CountryCode"] == "US"
    assert req["LocationSearchCriteria"]["SearchRadius"] == "75"


def test_transform_locations():
    assert transform_locations(None) == []
    assert transform_locations({"AvailableLocationAttributes": []}) == []

    locations = transform_locations({"AvailableLocationAttributes": [
        {"OptionCode": {"Name": "Drop-off"}},
        {"OptionCode": [{"Name": "Pickup"}, {"Code": "003"}]},
    ]})
    assert len(locations) == 1
    assert locations[0]["provider"] == "UPS"
    assert locations[0]["services"] == ["Drop-off", "Pickup"]
    assert locations[0]["id"].startswith("ups-")
