"""
UPS request builders and response normalizers.

Pure mapping between the seller's shipping form and the carrier's JSON
documents: nothing here touches the network or the database. The HTTP side
lives in ups_client.py.
"""
import logging
import os
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT_NUMBER = os.getenv("UPS_ACCOUNT_NUMBER", "724114")
PLACEHOLDER_PHONE = "5555555555"
DESCRIPTION_LIMIT = 50
DEFAULT_PICKUP_SERVICE = "001"

CM_PER_INCH = 2.54
KG_PER_POUND = 0.453592

GROUND = "03"
WORLDWIDE_EXPRESS = "07"

SERVICE_NAMES = {
    "01": "Next Day Air",
    "02": "2nd Day Air",
    "03": "Ground",
    "07": "Worldwide Express",
    "08": "Worldwide Expedited",
    "11": "Standard",
    "54": "Worldwide Express Plus",
    "65": "UPS Saver",
}

COUNTRY_NAMES = {
    "france": "FR",
    "united states": "US",
    "usa": "US",
    "united kingdom": "GB",
    "uk": "GB",
    "canada": "CA",
}


class ShipmentValidationError(ValueError):
    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(f"Please complete all required fields: {', '.join(missing)}")


class PickupValidationError(ValueError):
    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(
            "Address information is incomplete. Please provide "
            + ", ".join(missing)
            + "."
        )


class CarrierResponseError(ValueError):
    """The carrier answered 2xx but without the document we asked for."""


# ---------------------- Forms ----------------------

class PickupForm(BaseModel):
    shipper_name: str = ""
    shipper_attention: str = ""
    shipper_address: str = ""
    shipper_city: str = ""
    shipper_state: str = ""
    shipper_zip: str = ""
    shipper_country: str = "FR"
    shipper_phone: str = ""
    recipient_country: str = "FR"
    account_number: str = DEFAULT_ACCOUNT_NUMBER
    service_code: str = GROUND
    package_weight: float = 1.0
    ready_time: str = "1000"
    close_time: str = "1700"
    pickup_date: Optional[str] = None


class ShipmentForm(PickupForm):
    recipient_name: str = ""
    recipient_attention: str = ""
    recipient_address: str = ""
    recipient_city: str = ""
    recipient_state: str = ""
    recipient_zip: str = ""
    recipient_phone: str = ""
    package_length: float = 10.0
    package_width: float = 10.0
    package_height: float = 10.0
    description: Optional[str] = None


SHIPMENT_REQUIRED_FIELDS = [
    ("shipper_name", "Shipper Name"),
    ("shipper_address", "Shipper Address"),
    ("shipper_city", "Shipper City"),
    ("shipper_state", "Shipper State"),
    ("shipper_zip", "Shipper ZIP Code"),
    ("shipper_phone", "Shipper Phone"),
    ("account_number", "UPS Account Number"),
    ("recipient_name", "Recipient Name"),
    ("recipient_address", "Recipient Address"),
    ("recipient_city", "Recipient City"),
    ("recipient_state", "Recipient State"),
    ("recipient_zip", "Recipient ZIP Code"),
    ("recipient_phone", "Recipient Phone"),
]

PICKUP_REQUIRED_FIELDS = [
    ("shipper_address", "AddressLine"),
    ("shipper_city", "City"),
    ("shipper_state", "StateProvince"),
    ("shipper_zip", "PostalCode"),
]


# ---------------------- Normalization helpers ----------------------

def inches_to_cm(inches: float) -> float:
    return round(float(inches) * CM_PER_INCH, 1)


def pounds_to_kg(pounds: float) -> float:
    return round(float(pounds) * KG_PER_POUND, 2)


def normalize_country_code(country: Optional[str]) -> str:
    """Map free-text country input to an ISO-2 code, falling back to US."""
    value = (country or "").strip()
    code = COUNTRY_NAMES.get(value.lower(), value)
    if len(code) != 2:
        logger.warning('Invalid country code "%s", defaulting to US', country)
        return "US"
    return code.upper()


def is_international(shipper_country: str, recipient_country: str) -> bool:
    return normalize_country_code(shipper_country) != normalize_country_code(recipient_country)


def resolve_service_code(service_code: str, shipper_country: str, recipient_country: str) -> str:
    # Ground is domestic only
    if service_code == GROUND and is_international(shipper_country, recipient_country):
        logger.warning("Converting Ground shipment to %s for international shipping",
                       SERVICE_NAMES[WORLDWIDE_EXPRESS])
        return WORLDWIDE_EXPRESS
    return service_code


def service_name(code: str) -> str:
    return SERVICE_NAMES.get(code, "Unknown")


def shipment_date(today: Optional[date] = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return today.strftime("%Y%m%d")


def truncate_description(description: str) -> str:
    return description[:DESCRIPTION_LIMIT]


def _format_number(value: float) -> str:
    return f"{float(value):g}"


def _pickup_date(form: PickupForm, today: Optional[date]) -> str:
    if form.pickup_date:
        return form.pickup_date.replace("-", "")
    return shipment_date(today)


def _state_for(country_code: str, state: str) -> str:
    # UPS rejects a state/province for French addresses
    if country_code == "FR":
        return ""
    return (state or "").strip()


def _missing(form: BaseModel, fields) -> List[str]:
    return [label for name, label in fields if not str(getattr(form, name) or "").strip()]


# ---------------------- Shipment ----------------------

def validate_shipment_form(form: ShipmentForm) -> List[str]:
    return _missing(form, SHIPMENT_REQUIRED_FIELDS)


def _party(name: str, attention: str, phone: str, address: str, city: str,
           state: str, postal_code: str, country_code: str) -> Dict[str, Any]:
    return {
        "Name": name,
        "AttentionName": attention or name,
        "Phone": {"Number": phone},
        "Address": {
            "AddressLine": [address] if address else [],
            "City": city,
            "StateProvinceCode": state,
            "PostalCode": postal_code,
            "CountryCode": country_code,
        },
    }


def build_shipment_request(form: ShipmentForm, order_id: str,
                           today: Optional[date] = None) -> Dict[str, Any]:
    """Build a UPS ShipmentRequest from the shipping form.

    Dimensions go from inches to centimeters and weight from pounds to
    kilograms. Country input is normalized to ISO-2 and a Ground selection on
    an international route becomes Worldwide Express.
    """
    missing = validate_shipment_form(form)
    if missing:
        raise ShipmentValidationError(missing)

    shipper_country = normalize_country_code(form.shipper_country)
    recipient_country = normalize_country_code(form.recipient_country)
    service_code = resolve_service_code(form.service_code, shipper_country, recipient_country)

    description = truncate_description(form.description or f"Order #{order_id}")
    length = f"{inches_to_cm(form.package_length):.1f}"
    width = f"{inches_to_cm(form.package_width):.1f}"
    height = f"{inches_to_cm(form.package_height):.1f}"
    weight = f"{pounds_to_kg(form.package_weight):.2f}"
    ship_date = shipment_date(today)

    logger.debug("Shipment for order %s: %sx%sx%s cm, %s kg, service %s, date %s",
                 order_id, length, width, height, weight, service_code, ship_date)

    shipper = _party(form.shipper_name, form.shipper_attention, form.shipper_phone,
                     form.shipper_address, form.shipper_city,
                     (form.shipper_state or "").strip(), form.shipper_zip, shipper_country)
    ship_from = dict(shipper)
    ship_to = _party(form.recipient_name, form.recipient_attention, form.recipient_phone,
                     form.recipient_address, form.recipient_city,
                     _state_for(recipient_country, form.recipient_state),
                     form.recipient_zip, recipient_country)
    shipper["ShipperNumber"] = form.account_number
    ship_to["Residential"] = "true"

    return {
        "ShipmentRequest": {
            "Request": {
                "SubVersion": "1801",
                "RequestOption": "nonvalidate",
                "TransactionReference": {"CustomerContext": f"Order #{order_id}"},
            },
            "Shipment": {
                "Description": description,
                "Shipper": shipper,
                "ShipTo": ship_to,
                "ShipFrom": ship_from,
                "PaymentInformation": {
                    "ShipmentCharge": {
                        "Type": "01",
                        "BillShipper": {"AccountNumber": form.account_number},
                    }
                },
                "Service": {"Code": service_code, "Description": service_name(service_code)},
                "ShipmentRatingOptions": {"NegotiatedRatesIndicator": ""},
                "ShipmentDate": ship_date,
                "Package": {
                    "Description": description,
                    "Packaging": {"Code": "02", "Description": "Package"},
                    "Dimensions": {
                        "UnitOfMeasurement": {"Code": "CM", "Description": "Centimeters"},
                        "Length": length,
                        "Width": width,
                        "Height": height,
                    },
                    "PackageWeight": {
                        "UnitOfMeasurement": {"Code": "KGS", "Description": "Kilograms"},
                        "Weight": weight,
                    },
                },
            },
            "LabelSpecification": {
                "LabelImageFormat": {"Code": "GIF", "Description": "GIF"},
                "HTTPUserAgent": "Mozilla/5.0",
            },
        }
    }


# ---------------------- Pickup ----------------------

def validate_pickup_address(form: PickupForm) -> None:
    missing = _missing(form, PICKUP_REQUIRED_FIELDS)
    if missing:
        raise PickupValidationError(missing)


def pickup_service_code(service_code: str) -> str:
    """Pickup pieces take the 3-digit form of the shipping service code (03 -> 003)."""
    code = (service_code or "").strip()
    if not code.isdigit() or len(code) > 3:
        return DEFAULT_PICKUP_SERVICE
    return code.zfill(3)


def pickup_phone(form: PickupForm) -> str:
    phone = (form.shipper_phone or "").strip()
    if not phone:
        logger.warning("Shipper phone number is missing, using placeholder for UPS pickup")
        return PLACEHOLDER_PHONE
    return phone


def build_pickup_rate_request(form: PickupForm, order_id: str,
                              today: Optional[date] = None) -> Dict[str, Any]:
    validate_pickup_address(form)
    country = normalize_country_code(form.shipper_country)
    return {
        "PickupRateRequest": {
            "Request": {
                "RequestOption": "1",
                "TransactionReference": {"CustomerContext": f"Order #{order_id}"},
            },
            "ShipperAccount": {
                "AccountNumber": form.account_number,
                "AccountCountryCode": country,
            },
            "PickupAddress": {
                "AddressLine": form.shipper_address,
                "City": form.shipper_city,
                "StateProvince": _state_for(country, form.shipper_state),
                "PostalCode": form.shipper_zip,
                "CountryCode": country,
                "ResidentialIndicator": "N",
            },
            "AlternateAddressIndicator": "N",
            # Future-day pickup
            "ServiceDateOption": "02",
            "PickupDateInfo": {
                "CloseTime": form.close_time,
                "ReadyTime": form.ready_time,
                "PickupDate": _pickup_date(form, today),
            },
        }
    }


def build_pickup_creation_request(form: PickupForm, order_id: str,
                                  today: Optional[date] = None) -> Dict[str, Any]:
    validate_pickup_address(form)
    country = normalize_country_code(form.shipper_country)
    destination = normalize_country_code(form.recipient_country)
    return {
        "PickupCreationRequest": {
            "Request": {
                "RequestOption": "1",
                "TransactionReference": {"CustomerContext": f"Order #{order_id}"},
            },
            "RatePickupIndicator": "Y",
            "Shipper": {
                "Account": {
                    "AccountNumber": form.account_number,
                    "AccountCountryCode": country,
                }
            },
            "PickupDateInfo": {
                "CloseTime": form.close_time,
                "ReadyTime": form.ready_time,
                "PickupDate": _pickup_date(form, today),
            },
            "PickupAddress": {
                "CompanyName": form.shipper_name,
                "ContactName": form.shipper_attention or form.shipper_name,
                "AddressLine": form.shipper_address,
                "City": form.shipper_city,
                "StateProvince": _state_for(country, form.shipper_state),
                "PostalCode": form.shipper_zip,
                "CountryCode": country,
                "ResidentialIndicator": "Y",
                "Phone": {"Number": pickup_phone(form)},
            },
            "AlternateAddressIndicator": "N",
            "PickupPiece": [
                {
                    "ServiceCode": pickup_service_code(form.service_code),
                    "Quantity": "1",
                    "DestinationCountryCode": destination,
                    "ContainerCode": "02",
                }
            ],
            "TotalWeight": {
                "Weight": _format_number(form.package_weight),
                "UnitOfMeasurement": "LBS",
            },
            "OverweightIndicator": "N",
            "PaymentMethod": "01",
            "SpecialInstruction": f"Order #{order_id} pickup request",
            "ReferenceNumber": f"Order #{order_id}",
            "FreightOptions": {"FreightPickupFlag": "N"},
        }
    }


# ---------------------- Responses ----------------------

MISSING_IMAGE_WARNING = (
    "The shipment was created but UPS did not return a label image. "
    "Download the label from your UPS account before handing over the parcel."
)


class ShipmentLabel(BaseModel):
    tracking_number: Optional[str] = None
    label_image: Optional[str] = None
    label_format: str = "GIF"
    total_charge: Optional[str] = None
    currency: Optional[str] = None
    scheduled_delivery_date: Optional[str] = None
    missing_image: bool = False
    warning: Optional[str] = None


class PickupRate(BaseModel):
    service_type: str = "FD"
    total_charge: str = "0.00"
    currency: str = "USD"


class PickupConfirmation(BaseModel):
    prn: str
    total_charge: Optional[str] = None
    currency: Optional[str] = None


def _first(value: Any) -> Dict[str, Any]:
    # UPS returns a bare object for one package and a list for several
    if isinstance(value, list):
        return value[0] if value else {}
    return value or {}


def normalize_shipment_response(payload: Dict[str, Any]) -> ShipmentLabel:
    results = (payload or {}).get("ShipmentResponse", {}).get("ShipmentResults")
    if not results:
        raise CarrierResponseError("Invalid response format from shipping API")

    package = _first(results.get("PackageResults"))
    label = package.get("ShippingLabel") or {}
    image = label.get("GraphicImage")
    image_format = (label.get("ImageFormat") or {}).get("Code") or "GIF"
    charges = (results.get("ShipmentCharges") or {}).get("TotalCharges") or {}

    shipment = ShipmentLabel(
        tracking_number=results.get("ShipmentIdentificationNumber") or package.get("TrackingNumber"),
        label_image=image or None,
        label_format=image_format,
        total_charge=charges.get("MonetaryValue"),
        currency=charges.get("CurrencyCode"),
        scheduled_delivery_date=results.get("ScheduledDeliveryDate"),
    )
    if not shipment.label_image:
        logger.warning("UPS shipment %s returned no label image", shipment.tracking_number)
        shipment.missing_image = True
        shipment.warning = MISSING_IMAGE_WARNING
    return shipment


def normalize_pickup_rate_response(payload: Dict[str, Any]) -> PickupRate:
    result = (payload or {}).get("PickupRateResponse", {}).get("RateResult")
    if not result:
        raise CarrierResponseError("Invalid response format from pickup rate API")
    return PickupRate(
        service_type=result.get("RateType") or "FD",
        total_charge=result.get("GrandTotalOfAllCharge") or "0.00",
        currency=result.get("CurrencyCode") or "USD",
    )


def normalize_pickup_creation_response(payload: Dict[str, Any]) -> PickupConfirmation:
    payload = payload or {}
    body = payload.get("PickupCreationResponse") or payload
    if not body.get("PRN"):
        raise CarrierResponseError("Invalid response format from pickup creation API")
    rate = body.get("RateResult") or {}
    return PickupConfirmation(
        prn=body["PRN"],
        total_charge=rate.get("GrandTotalOfAllCharge"),
        currency=rate.get("CurrencyCode"),
    )


# ---------------------- Carrier errors ----------------------

class CarrierErrorKind(str, Enum):
    shipper_number_country = "shipper_number_country"
    ship_to_country = "ship_to_country"
    shipment_date = "shipment_date"
    account_number = "account_number"
    phone = "phone"
    address = "address"
    country = "country"
    service = "service"
    unknown = "unknown"


# First match wins
_ERROR_MARKERS = [
    (CarrierErrorKind.shipper_number_country, ("120120", "ShipperNumber must be the same as")),
    (CarrierErrorKind.ship_to_country, ("Ship To country must match destination country",)),
    (CarrierErrorKind.shipment_date, ("ShipmentDate",)),
    (CarrierErrorKind.account_number, ("RateAccountNumber", "AccountNumber")),
    (CarrierErrorKind.phone, ("Phone",)),
    (CarrierErrorKind.address, ("Address",)),
    (CarrierErrorKind.country, ("Country",)),
    (CarrierErrorKind.service, ("Service",)),
]


def carrier_error_details(payload: Any) -> str:
    """Flatten a UPS error document into "code: message; code: message"."""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        errors = (payload.get("response") or {}).get("errors")
        if errors:
            return "; ".join(f"{e.get('code')}: {e.get('message')}" for e in errors)
        if payload.get("error"):
            return str(payload["error"])
    return str(payload) if payload else "Unknown error"


def classify_carrier_error(text: str) -> CarrierErrorKind:
    text = text or ""
    for kind, markers in _ERROR_MARKERS:
        if any(marker in text for marker in markers):
            return kind
    return CarrierErrorKind.unknown


def friendly_carrier_message(kind: CarrierErrorKind, details: str,
                             account_number: str = DEFAULT_ACCOUNT_NUMBER,
                             international: bool = False) -> str:
    if kind == CarrierErrorKind.shipper_number_country:
        return (f"The UPS account number {account_number} is not valid for the shipper's "
                "country. Please make sure the shipper address matches the account country.")
    if kind == CarrierErrorKind.ship_to_country:
        return ("The recipient country in your shipping details does not match the destination "
                "country. Please verify the recipient country is correct.")
    if kind == CarrierErrorKind.shipment_date:
        return ("Invalid shipment date. Please ensure the shipment date is not in the past "
                "or too far in the future.")
    if kind == CarrierErrorKind.account_number:
        return (f"There is an issue with the UPS account number. Please verify the account "
                f"number ({account_number}) is correct and enabled for this type of shipment.")
    if kind == CarrierErrorKind.phone:
        return "UPS requires a valid phone number. Please enter a phone number."
    if kind == CarrierErrorKind.address:
        return ("UPS could not validate one of the addresses. Please ensure the addresses "
                "are complete and correctly formatted.")
    if kind == CarrierErrorKind.country:
        return "There was an issue with the country code. Please ensure all country codes are valid."
    if kind == CarrierErrorKind.service:
        return ("The selected service is not available for this shipment. "
                "Please try a different service.")
    if international:
        return ("International shipping error: please verify the country codes and that the "
                "service type supports international delivery.")
    return details
