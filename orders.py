import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded", "cancelled")
CANCELLABLE = ("pending", "processing")


class OrderStateError(ValueError):
    pass


def now_utc():
    return datetime.now(timezone.utc)


def notify(db, user_id: str, title: str, message: str, data: Optional[Dict[str, Any]] = None,
           type: str = "order") -> None:
    db["notification"].insert_one({
        "user_id": user_id,
        "type": type,
        "title": title,
        "message": message,
        "data": data or {},
        "read": False,
        "created_at": now_utc(),
    })


def create_order(db, buyer_id: str, items: List[Dict[str, Any]], payment_method: str,
                 shipping_address: Optional[Dict[str, Any]] = None,
                 pickup_point: Optional[Dict[str, Any]] = None,
                 shipping_method: str = "standard") -> Dict[str, Any]:
    """Price the items from the catalog, take them out of stock and store the order.

    The seller is the seller of the first item. Quantities are summed per
    product and checked against stock before anything is decremented.
    """
    if not items:
        raise OrderStateError("Order must contain at least one item")

    wanted: Dict[str, int] = {}
    for it in items:
        wanted[it["product_id"]] = wanted.get(it["product_id"], 0) + it["quantity"]

    catalog: Dict[str, Dict[str, Any]] = {}
    for product_id, quantity in wanted.items():
        product = db["product"].find_one({"_id": ObjectId(product_id)})
        if not product:
            raise OrderStateError(f"Product {product_id} not found")
        if product.get("stock", 0) < quantity:
            raise OrderStateError(f"Insufficient stock for {product.get('title')}")
        catalog[product_id] = product
    products = [catalog[it["product_id"]] for it in items]

    order_items = []
    total = 0.0
    for it, product in zip(items, products):
        price = float(product["price"])
        total += price * it["quantity"]
        order_items.append({"product_id": it["product_id"], "quantity": it["quantity"], "price": price})
        db["product"].update_one({"_id": product["_id"]}, {"$inc": {"stock": -it["quantity"]}})

    seller_id = products[0]["seller_id"]
    order = {
        "buyer_id": buyer_id,
        "seller_id": seller_id,
        "items": order_items,
        "total_amount": round(total, 2),
        "shipping_address": shipping_address,
        "pickup_point": pickup_point,
        "status": "pending",
        "payment_status": "pending",
        "payment_method": payment_method,
        "shipping_method": shipping_method,
        "tracking_number": None,
        "created_at": now_utc(),
        "updated_at": now_utc(),
    }
    order["_id"] = db["order"].insert_one(order).inserted_id
    order_id = str(order["_id"])

    notify(db, buyer_id, "Order Placed", f"Your order #{order_id} has been placed successfully",
           {"order_id": order_id})
    notify(db, seller_id, "New Order", f"You have received a new order #{order_id}",
           {"order_id": order_id})
    logger.info("Order %s created for buyer %s, total %s", order_id, buyer_id, order["total_amount"])
    return order


def update_status(db, order: Dict[str, Any], status: str) -> Dict[str, Any]:
    if status not in ORDER_STATUSES:
        raise OrderStateError(f"Invalid status: {status}")
    if order["status"] == "cancelled":
        raise OrderStateError("Cancelled orders cannot change status")
    if status == "cancelled":
        return cancel_order(db, order)
    db["order"].update_one({"_id": order["_id"]}, {"$set": {"status": status, "updated_at": now_utc()}})
    order_id = str(order["_id"])
    notify(db, order["buyer_id"], "Order Status Updated",
           f"Your order #{order_id} status has been updated to {status}",
           {"order_id": order_id, "status": status})
    return db["order"].find_one({"_id": order["_id"]})


def cancel_order(db, order: Dict[str, Any]) -> Dict[str, Any]:
    if order["status"] not in CANCELLABLE:
        raise OrderStateError("Order cannot be cancelled")
    db["order"].update_one({"_id": order["_id"]}, {"$set": {"status": "cancelled", "updated_at": now_utc()}})
    for it in order.get("items", []):
        db["product"].update_one({"_id": ObjectId(it["product_id"])}, {"$inc": {"stock": it["quantity"]}})

    order_id = str(order["_id"])
    notify(db, order["buyer_id"], "Order Cancelled", f"Your order #{order_id} has been cancelled",
           {"order_id": order_id})
    notify(db, order["seller_id"], "Order Cancelled", f"Order #{order_id} has been cancelled",
           {"order_id": order_id})
    return db["order"].find_one({"_id": order["_id"]})


def update_payment_status(db, order: Dict[str, Any], payment_status: str) -> Dict[str, Any]:
    # allowed on cancelled orders too, for refunds and corrections
    if payment_status not in PAYMENT_STATUSES:
        raise OrderStateError(f"Invalid payment status: {payment_status}")
    db["order"].update_one({"_id": order["_id"]},
                           {"$set": {"payment_status": payment_status, "updated_at": now_utc()}})
    return db["order"].find_one({"_id": order["_id"]})


def record_shipment(db, order: Dict[str, Any], tracking_number: Optional[str]) -> None:
    changes: Dict[str, Any] = {"tracking_number": tracking_number, "updated_at": now_utc()}
    if order["status"] in ("pending", "processing"):
        changes["status"] = "shipped"
    db["order"].update_one({"_id": order["_id"]}, {"$set": changes})


def record_pickup(db, order: Dict[str, Any], prn: str) -> None:
    db["order"].update_one({"_id": order["_id"]},
                           {"$set": {"pickup_reference_number": prn, "updated_at": now_utc()}})
