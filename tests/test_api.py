from bson import ObjectId

from shipping import DEFAULT_ACCOUNT_NUMBER
from ups_client import UPSError


SHIPMENT_RESPONSE = {"ShipmentResponse": {"ShipmentResults": {
    "ShipmentIdentificationNumber": "1Z999AA10123456784",
    "ShipmentCharges": {"TotalCharges": {"MonetaryValue": "18.20", "CurrencyCode": "EUR"}},
    "PackageResults": {"TrackingNumber": "1Z999AA10123456784",
                       "ShippingLabel": {"GraphicImage": "R0lGODlh", "ImageFormat": {"Code": "GIF"}}},
}}}


def shipping_form(**overrides):
    form = {
        "shipper_name": "Casse Auto Lyon",
        "shipper_address": "12 Rue de la Paix",
        "shipper_city": "Lyon",
        "shipper_state": "ARA",
        "shipper_zip": "69001",
        "shipper_country": "FR",
        "shipper_phone": "0472000000",
        "recipient_name": "Jean Dupont",
        "recipient_address": "3 Avenue Foch",
        "recipient_city": "Paris",
        "recipient_state": "IDF",
        "recipient_zip": "75016",
        "recipient_country": "FR",
        "recipient_phone": "0145000000",
        "account_number": "A1B2C3",
    }
    form.update(overrides)
    return form


def place_order(client, buyer, product_id, quantity=1):
    res = client.post("/api/orders", headers=buyer, json={
        "items": [{"product_id": product_id, "quantity": quantity}],
        "payment_method": "card",
        "shipping_address": {"street": "3 Avenue Foch", "city": "Paris", "postal_code": "75016",
                             "country": "FR"},
    })
    assert res.status_code == 201, res.text
    return res.json()["data"]


def seller_with_order(client, register, product):
    seller, seller_id = register("seller", store_name="Casse Auto Lyon")
    buyer, buyer_id = register()
    order = place_order(client, buyer, product(seller_id))
    return seller, seller_id, buyer, buyer_id, order


# ---------------------- health & errors ----------------------

def test_root(client):
    assert client.get("/").json() == {"message": "Auto Parts Marketplace API running"}


def test_unknown_route_and_bad_id_use_the_envelope(client):
    res = client.get("/api/nope")
    assert res.status_code == 404
    assert res.json()["success"] is False

    res = client.get("/api/products/not-an-id")
    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "Invalid ID", "error": "Invalid ID"}


def test_validation_errors_answer_400(client):
    res = client.post("/api/auth/register", json={"first_name": "A", "last_name": "B",
                                                   "email": "not-an-email", "password": "secret123"})
    assert res.status_code == 400
    assert res.json()["success"] is False
    assert res.json()["error"]


# ---------------------- auth ----------------------

def test_register_login_me(client, register):
    headers, user_id = register()

    res = client.post("/api/auth/login", json={"email": "user1@example.com", "password": "secret123"})
    assert res.status_code == 200
    assert res.json()["data"]["token"]

    me = client.get("/api/auth/me", headers=headers).json()["data"]
    assert me["_id"] == user_id
    assert "password_hash" not in me


def test_duplicate_email_and_bad_password(client, register):
    register()
    res = client.post("/api/auth/register", json={"first_name": "A", "last_name": "B",
                                                   "email": "user1@example.com", "password": "secret123"})
    assert res.status_code == 400
    assert res.json()["message"] == "Email already registered"

    res = client.post("/api/auth/login", json={"email": "user1@example.com", "password": "wrong"})
    assert res.status_code == 401


def test_protected_routes_need_a_token(client):
    assert client.get("/api/auth/me").status_code in (401, 403)
    res = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401


# ---------------------- categories ----------------------

def test_category_tree_and_delete_guard(client, register):
    admin, _ = register("admin")

    engine = client.post("/api/categories", headers=admin,
                         json={"name": "Engine Parts", "description": "Engine"}).json()
    assert engine["slug"] == "engine-parts"
    filters = client.post("/api/categories", headers=admin,
                          json={"name": "Filters", "description": "Oil and air", "parent_id": engine["_id"]}).json()

    tree = client.get("/api/categories").json()
    assert [c["_id"] for c in tree] == [engine["_id"]]
    assert tree[0]["subcategories"][0]["_id"] == filters["_id"]

    res = client.delete(f"/api/categories/{engine['_id']}", headers=admin)
    assert res.status_code == 400
    assert client.get("/api/categories/count").json() == {"total_categories": 2}

    assert client.delete(f"/api/categories/{filters['_id']}", headers=admin).status_code == 200
    assert client.delete(f"/api/categories/{engine['_id']}", headers=admin).status_code == 200


def test_only_admins_manage_categories(client, register):
    buyer, _ = register()
    res = client.post("/api/categories", headers=buyer, json={"name": "X", "description": "Y"})
    assert res.status_code == 403


# ---------------------- brands ----------------------

def test_brand_models_and_versions(client, register):
    admin, _ = register("admin")
    brand = client.post("/api/brands", headers=admin, json={"name": "Peugeot"}).json()["data"]

    brand = client.post(f"/api/brands/{brand['_id']}/models", headers=admin, json={"name": "208"}).json()["data"]
    model_id = brand["models"][0]["_id"]
    brand = client.post(f"/api/brands/{brand['_id']}/models/{model_id}/versions", headers=admin,
                        json={"name": "1.2 PureTech"}).json()["data"]
    assert brand["models"][0]["versions"][0]["name"] == "1.2 PureTech"

    res = client.post(f"/api/brands/{brand['_id']}/models", headers=admin, json={"name": "208"})
    assert res.status_code == 400


# ---------------------- addresses ----------------------

def test_address_defaults_through_api(client, register):
    buyer, _ = register()
    body = {"street": "1 Rue Test", "city": "Paris", "state": "IDF", "postal_code": "75001", "country": "FR"}

    first = client.post("/api/addresses", headers=buyer, json=body).json()["data"]
    second = client.post("/api/addresses", headers=buyer, json={**body, "city": "Lyon"}).json()["data"]
    assert first["is_default"] is True
    assert second["is_default"] is False

    client.put(f"/api/addresses/{second['_id']}/default", headers=buyer)
    addresses = client.get("/api/addresses", headers=buyer).json()["data"]
    assert [a["_id"] for a in addresses if a["is_default"]] == [second["_id"]]
    assert client.get("/api/addresses/default", headers=buyer).json()["data"]["city"] == "Lyon"


# ---------------------- orders & reviews ----------------------

def test_order_lifecycle(client, register, product, mdb):
    seller, seller_id, buyer, _, order = seller_with_order(client, register, product)
    assert order["total_amount"] == 25.0

    mine = client.get("/api/orders/mine", headers=buyer).json()
    assert mine["total"] == 1

    res = client.put(f"/api/orders/{order['_id']}/status", headers=buyer, json={"status": "shipped"})
    assert res.status_code == 403

    res = client.put(f"/api/orders/{order['_id']}/cancel", headers=buyer)
    assert res.json()["data"]["status"] == "cancelled"

    res = client.put(f"/api/orders/{order['_id']}/status", headers=seller, json={"status": "processing"})
    assert res.status_code == 400

    res = client.put(f"/api/orders/{order['_id']}/payment-status", headers=seller,
                     json={"payment_status": "refunded"})
    assert res.json()["data"]["payment_status"] == "refunded"


def test_review_updates_seller_rating(client, register, product, mdb):
    seller, seller_id, buyer, _, order = seller_with_order(client, register, product)

    res = client.post("/api/seller-reviews", headers=buyer,
                      json={"seller_id": seller_id, "order_id": order["_id"], "rating": 4})
    assert res.status_code == 400

    client.put(f"/api/orders/{order['_id']}/status", headers=seller, json={"status": "delivered"})
    eligible = client.get("/api/seller-reviews/eligible-orders", headers=buyer).json()["data"]
    assert [o["_id"] for o in eligible] == [order["_id"]]

    res = client.post("/api/seller-reviews", headers=buyer,
                      json={"seller_id": seller_id, "order_id": order["_id"], "rating": 4, "comment": "Fast"})
    assert res.status_code == 201
    review_id = res.json()["data"]["review"]["_id"]
    assert res.json()["data"]["seller_rating"] == 4.0
    assert mdb["user"].find_one({"_id": ObjectId(seller_id)})["rating"] == 4.0

    res = client.post("/api/seller-reviews", headers=buyer,
                      json={"seller_id": seller_id, "order_id": order["_id"], "rating": 5})
    assert res.status_code == 400

    listing = client.get(f"/api/seller-reviews/seller/{seller_id}").json()["data"]
    assert len(listing["reviews"]) == 1
    assert listing["stats"]["distribution"]["4"] == 1

    res = client.put(f"/api/seller-reviews/{review_id}", headers=buyer, json={"rating": 2})
    assert res.json()["seller_rating"] == 2.0

    res = client.delete(f"/api/seller-reviews/{review_id}", headers=buyer)
    assert res.json()["data"]["seller_rating"] == 0
    assert mdb["user"].find_one({"_id": ObjectId(seller_id)})["rating"] == 0


# ---------------------- UPS ----------------------

def test_create_shipment_marks_order_shipped(client, register, product, mdb, ups):
    seller, _, _, _, order = seller_with_order(client, register, product)
    ups.responses["create_shipment"] = SHIPMENT_RESPONSE

    res = client.post("/api/ups/shipments", headers=seller,
                      json={"order_id": order["_id"], "form": shipping_form(recipient_country="US")})

    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["tracking_number"] == "1Z999AA10123456784"
    assert data["missing_image"] is False

    (payload,), = ups.called("create_shipment")
    assert payload["ShipmentRequest"]["Shipment"]["Service"]["Code"] == "07"

    stored = mdb["order"].find_one({"_id": ObjectId(order["_id"])})
    assert stored["status"] == "shipped"
    assert stored["tracking_number"] == "1Z999AA10123456784"


def test_shipment_with_missing_fields_never_reaches_carrier(client, register, product, ups):
    seller, _, _, _, order = seller_with_order(client, register, product)

    res = client.post("/api/ups/shipments", headers=seller,
                      json={"order_id": order["_id"], "form": shipping_form(recipient_phone="")})

    assert res.status_code == 400
    assert "Recipient Phone" in res.json()["message"]
    assert ups.calls == []


def test_shipment_carrier_error_is_explained(client, register, product, ups):
    seller, _, _, _, order = seller_with_order(client, register, product)
    ups.error = UPSError("UPS API error", status_code=400, payload={"response": {"errors": [
        {"code": "120120", "message": "ShipperNumber must be the same as shipper country"}]}})

    res = client.post("/api/ups/shipments", headers=seller,
                      json={"order_id": order["_id"], "form": shipping_form()})

    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert "A1B2C3" in body["message"]
    assert body["error"].startswith("120120")


def test_only_the_seller_ships_and_not_when_cancelled(client, register, product, ups):
    seller, _, buyer, _, order = seller_with_order(client, register, product)
    body = {"order_id": order["_id"], "form": shipping_form()}

    assert client.post("/api/ups/shipments", headers=buyer, json=body).status_code == 403

    client.put(f"/api/orders/{order['_id']}/cancel", headers=buyer)
    assert client.post("/api/ups/shipments", headers=seller, json=body).status_code == 400
    assert ups.calls == []


def test_pickup_rate_rejects_incomplete_address(client, register, product, ups):
    seller, _, _, _, order = seller_with_order(client, register, product)

    res = client.post("/api/ups/pickuprate", headers=seller,
                      json={"order_id": order["_id"], "form": shipping_form(shipper_city="")})

    assert res.status_code == 400
    assert res.json()["message"] == "Address information is incomplete. Please provide City."
    assert ups.calls == []


def test_pickup_rate(client, register, product, ups):
    seller, _, _, _, order = seller_with_order(client, register, product)
    ups.responses["rate_pickup"] = {"PickupRateResponse": {"RateResult": {"GrandTotalOfAllCharge": "6.50",
                                                                          "CurrencyCode": "EUR"}}}

    res = client.post("/api/ups/pickuprate", headers=seller,
                      json={"order_id": order["_id"], "form": shipping_form()})

    assert res.json()["data"] == {"service_type": "FD", "total_charge": "6.50", "currency": "EUR"}


def test_pickup_creation_stores_reference(client, register, product, mdb, ups):
    seller, _, _, _, order = seller_with_order(client, register, product)
    ups.responses["create_pickup"] = {"PickupCreationResponse": {"PRN": "2929AONCALL"}}

    res = client.post("/api/ups/pickupcreation", headers=seller,
                      json={"order_id": order["_id"], "form": shipping_form(shipper_phone="")})

    assert res.json()["data"]["prn"] == "2929AONCALL"
    (payload,), = ups.called("create_pickup")
    assert payload["PickupCreationRequest"]["PickupAddress"]["Phone"]["Number"] == "5555555555"
    stored = mdb["order"].find_one({"_id": ObjectId(order["_id"])})
    assert stored["pickup_reference_number"] == "2929AONCALL"


def test_pickup_status_account_header(client, register, ups):
    headers, _ = register("seller")

    client.get("/api/ups/pickup-status/2929AONCALL", headers={**headers, "x-ups-account-number": "A1B2C3"})
    client.get("/api/ups/pickup-status/2929AONCALL", headers=headers)

    assert ups.called("pickup_status") == [("2929AONCALL", "A1B2C3"), ("2929AONCALL", DEFAULT_ACCOUNT_NUMBER)]


def test_location_search(client, register, ups):
    headers, _ = register()
    params = {"address": "1 Main St", "city": "Austin", "state": "TX", "postal_code": "78701",
              "country": "United States"}
    ups.responses["search_locations"] = {"LocatorResponse": {
        "Response": {"ResponseStatusCode": "1"},
        "SearchResults": {"AvailableLocationAttributes": [{"OptionCode": {"Name": "Drop-off"}}]},
    }}

    res = client.post("/api/ups/locations/search", headers=headers, json={"params": params})
    assert res.json()["locations"][0]["services"] == ["Drop-off"]
    (request, token), = ups.called("search_locations")
    assert request["LocatorRequest"]["OriginAddress"]["AddressKeyFormat"]["CountryCode"] == "US"
    assert token is None

    ups.responses["search_locations"] = {"LocatorResponse": {"Response": {"ResponseStatusCode": "0"}}}
    res = client.post("/api/ups/locations/search", headers=headers, json={"params": params})
    assert res.status_code == 502


def test_tracking_is_public(client, ups):
    ups.responses["track"] = {"trackResponse": {"shipment": []}}
    res = client.get("/api/ups/tracking/1Z999AA10123456784")
    assert res.json() == {"trackResponse": {"shipment": []}}


# ---------------------- banners, wishlist, messages ----------------------

def test_banners_within_window(client, register):
    admin, _ = register("admin")
    client.post("/api/banners", headers=admin, json={"title": "Spring sale", "image_url": "/sale.jpg"})
    client.post("/api/banners", headers=admin, json={"title": "Later", "image_url": "/later.jpg",
                                                     "start_date": "2099-01-01T00:00:00Z"})
    client.post("/api/banners", headers=admin, json={"title": "Sidebar", "image_url": "/side.jpg",
                                                     "position": "sidebar"})

    live = client.get("/api/banners", params={"position": "home_top"}).json()["data"]
    assert [b["title"] for b in live] == ["Spring sale"]
    assert len(client.get("/api/admin/banners", headers=admin).json()["data"]) == 3


def test_banner_update_keeps_fields_left_out(client, register):
    admin, _ = register("admin")
    banner = client.post("/api/banners", headers=admin, json={
        "title": "Sidebar", "image_url": "/side.jpg", "position": "sidebar", "link": "/deals", "is_active": False,
    }).json()["data"]

    res = client.put(f"/api/banners/{banner['_id']}", headers=admin, json={"title": "Winter tyres"})

    updated = res.json()["data"]
    assert updated["title"] == "Winter tyres"
    assert updated["position"] == "sidebar"
    assert updated["link"] == "/deals"
    assert updated["is_active"] is False
    assert updated["image_url"] == "/side.jpg"


def test_wishlist_keeps_one_entry_per_product(client, register, product):
    seller, seller_id = register("seller")
    buyer, _ = register()
    product_id = product(seller_id, price=42.0)

    client.post(f"/api/wishlist/{product_id}", headers=buyer)
    res = client.post(f"/api/wishlist/{product_id}", headers=buyer)
    assert res.json()["total_items"] == 1
    assert res.json()["data"]["products"][0]["price_at_add"] == 42.0
    assert client.get(f"/api/wishlist/check/{product_id}", headers=buyer).json()["data"]["in_wishlist"] is True

    res = client.delete(f"/api/wishlist/{product_id}", headers=buyer)
    assert res.json()["total_items"] == 0


def test_conversation_notifies_recipient(client, register, mdb):
    buyer, _ = register()
    seller, seller_id = register("seller")

    conv = client.post("/api/conversations", headers=buyer,
                       json={"recipient_id": seller_id, "content": "Is the alternator still available?"})
    assert conv.status_code == 201
    conv_id = conv.json()["data"]["_id"]

    client.post(f"/api/conversations/{conv_id}/messages", headers=seller, json={"content": "Yes"})
    messages = client.get(f"/api/conversations/{conv_id}/messages", headers=buyer).json()["data"]
    assert [m["content"] for m in messages] == ["Is the alternator still available?", "Yes"]

    notes = client.get("/api/notifications", headers=seller).json()
    assert notes["unread_count"] == 1
    assert notes["data"][0]["type"] == "message"
    client.put("/api/notifications/read-all", headers=seller)
    assert client.get("/api/notifications", headers=seller).json()["unread_count"] == 0
