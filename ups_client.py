"""
Thin UPS API client (sandbox by default).

No retries or backoff; every call gets the blanket UPS_TIMEOUT.
"""
import logging
import os
import time
import uuid
from typing import Any, Dict, List, Optional

import httpx

from shipping import carrier_error_details

logger = logging.getLogger(__name__)

UPS_BASE_URL = os.getenv("UPS_BASE_URL", "https://wwwcie.ups.com")
UPS_CLIENT_ID = os.getenv("UPS_CLIENT_ID", "")
UPS_CLIENT_SECRET = os.getenv("UPS_CLIENT_SECRET", "")
UPS_MERCHANT_ID = os.getenv("UPS_MERCHANT_ID", "123456")
UPS_TIMEOUT = float(os.getenv("UPS_TIMEOUT", "120"))
TRANSACTION_SRC = "testing"


class UPSError(Exception):
    def __init__(self, message: str, status_code: int = 500, payload: Any = None):
        self.status_code = status_code
        self.payload = payload
        self.details = carrier_error_details(payload) if payload is not None else message
        super().__init__(message)


def build_locator_request(address: str, city: str, state: str, postal_code: str,
                          country_code: str = "US") -> Dict[str, Any]:
    return {
        "LocatorRequest": {
            "Request": {
                "TransactionReference": {"CustomerContext": TRANSACTION_SRC},
                "RequestAction": "Locator",
            },
            "OriginAddress": {
                "AddressKeyFormat": {
                    "AddressLine": address,
                    "PoliticalDivision2": city,
                    "PoliticalDivision1": state,
                    "PostcodePrimaryLow": postal_code,
                    "PostcodeExtendedLow": postal_code,
                    "CountryCode": country_code,
                },
                "MaximumListSize": "10",
            },
            "Translate": {"LanguageCode": "eng", "Locale": "en_US"},
            "UnitOfMeasurement": {"Code": "MI"},
            "LocationSearchCriteria": {
                "SearchOption": [{"OptionType": {"Code": "01"}, "OptionCode": {"Code": "001"}}],
                "MaximumListSize": "10",
                "SearchRadius": "75",
            },
            "SortCriteria": {"SortType": "01"},
        }
    }


def transform_locations(search_results: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Turn a locator availability answer into pickup points.

    The availabilities endpoint only lists the services on offer, not the
    drop-off locations themselves, so a single generic UPS point is returned
    carrying those services.
    """
    if not search_results or not search_results.get("AvailableLocationAttributes"):
        return []
    services = []
    for attr in search_results["AvailableLocationAttributes"]:
        options = attr.get("OptionCode") or []
        if isinstance(options, dict):
            options = [options]
        services.extend(o.get("Name") for o in options if o.get("Name"))
    return [{
        "id": f"ups-{uuid.uuid4().hex[:8]}",
        "provider": "UPS",
        "name": "UPS Store",
        "services": services,
    }]


class UPSClient:
    def __init__(self, base_url: str = UPS_BASE_URL, client_id: str = UPS_CLIENT_ID,
                 client_secret: str = UPS_CLIENT_SECRET, merchant_id: str = UPS_MERCHANT_ID,
                 timeout: float = UPS_TIMEOUT, http: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.merchant_id = merchant_id
        self.http = http or httpx.Client(base_url=self.base_url, timeout=timeout)
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    # ---------------------- transport ----------------------

    def _headers(self, token: str, **extra: str) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "transId": str(int(time.time() * 1000)),
            "transactionSrc": TRANSACTION_SRC,
        }
        headers.update(extra)
        return headers

    def _send(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        logger.debug("UPS %s %s", method, path)
        try:
            response = self.http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise UPSError(f"UPS request failed: {e}") from e
        try:
            payload = response.json()
        except ValueError:
            payload = response.text
        if response.status_code >= 400:
            logger.error("UPS %s %s -> %s: %s", method, path, response.status_code, payload)
            raise UPSError("UPS API error", status_code=response.status_code, payload=payload)
        return payload

    # ---------------------- auth ----------------------

    def get_token(self) -> Dict[str, Any]:
        return self._send(
            "POST",
            "/security/v1/oauth/token",
            auth=(self.client_id, self.client_secret),
            headers={"x-merchant-id": self.merchant_id},
            data={"grant_type": "client_credentials"},
        )

    def access_token(self) -> str:
        if self._token and time.time() < self._token_expires_at:
            return self._token
        data = self.get_token()
        self._token = data["access_token"]
        # refresh a minute early
        self._token_expires_at = time.time() + int(data.get("expires_in", 0)) - 60
        return self._token

    # ---------------------- API ----------------------

    def search_locations(self, locator_request: Dict[str, Any],
                         access_token: Optional[str] = None) -> Dict[str, Any]:
        token = access_token or self.access_token()
        return self._send(
            "POST",
            "/api/locations/v3/search/availabilities/8",
            headers=self._headers(token),
            params={"Locale": "en_US"},
            json=locator_request,
        )

    def create_shipment(self, shipment_request: Dict[str, Any]) -> Dict[str, Any]:
        return self._send(
            "POST",
            "/api/shipments/v2403/ship",
            headers=self._headers(self.access_token()),
            params={"additionaladdressvalidation": "1"},
            json=shipment_request,
        )

    def rate_pickup(self, rate_request: Dict[str, Any]) -> Dict[str, Any]:
        return self._send(
            "POST",
            "/api/shipments/v2409/pickup/2929602E9CP",
            headers=self._headers(self.access_token()),
            json=rate_request,
        )

    def create_pickup(self, creation_request: Dict[str, Any]) -> Dict[str, Any]:
        return self._send(
            "POST",
            "/api/pickupcreation/v2409/pickup",
            headers=self._headers(self.access_token()),
            json=creation_request,
        )

    def pickup_status(self, prn: str, account_number: str) -> Dict[str, Any]:
        return self._send(
            "GET",
            f"/api/shipments/v2409/pickup/{prn}",
            headers=self._headers(self.access_token(), AccountNumber=account_number),
        )

    def track(self, tracking_number: str) -> Dict[str, Any]:
        return self._send(
            "GET",
            f"/api/track/v1/details/{tracking_number}",
            headers=self._headers(self.access_token()),
            params={
                "locale": "en_US",
                "returnSignature": "false",
                "returnMilestones": "false",
                "returnPOD": "false",
            },
        )
