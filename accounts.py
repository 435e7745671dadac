"""
Per-user default address / default payment method bookkeeping.

A user has at most one `is_default` document in each collection. The first
document a user creates becomes the default, flagging one as default clears
the flag on the others, and deleting the default promotes another one.
These are plain sequential writes with no transaction, so two concurrent
requests for the same user can still race.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId

ADDRESSES = "address"
PAYMENT_METHODS = "paymentmethod"


def _now():
    return datetime.now(timezone.utc)


def _unset_other_defaults(db, collection: str, user_id: str, keep_id: ObjectId) -> None:
    db[collection].update_many(
        {"user_id": user_id, "_id": {"$ne": keep_id}, "is_default": True},
        {"$set": {"is_default": False, "updated_at": _now()}},
    )


def _insert(db, collection: str, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    doc = {**fields, "user_id": user_id}
    if db[collection].count_documents({"user_id": user_id}) == 0:
        doc["is_default"] = True
    doc.setdefault("is_default", False)
    doc["created_at"] = doc["updated_at"] = _now()
    doc["_id"] = db[collection].insert_one(doc).inserted_id
    if doc["is_default"]:
        _unset_other_defaults(db, collection, user_id, doc["_id"])
    return doc


def _update(db, collection: str, user_id: str, doc_id: ObjectId,
            fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    doc = db[collection].find_one({"_id": doc_id, "user_id": user_id})
    if not doc:
        return None
    changes = {k: v for k, v in fields.items() if v is not None}
    changes["updated_at"] = _now()
    db[collection].update_one({"_id": doc_id}, {"$set": changes})
    if changes.get("is_default"):
        _unset_other_defaults(db, collection, user_id, doc_id)
    return db[collection].find_one({"_id": doc_id})


def _set_default(db, collection: str, user_id: str, doc_id: ObjectId) -> Optional[Dict[str, Any]]:
    return _update(db, collection, user_id, doc_id, {"is_default": True})


def _delete(db, collection: str, user_id: str, doc_id: ObjectId) -> bool:
    doc = db[collection].find_one({"_id": doc_id, "user_id": user_id})
    if not doc:
        return False
    db[collection].delete_one({"_id": doc_id})
    if doc.get("is_default"):
        replacement = db[collection].find_one({"user_id": user_id}, sort=[("created_at", -1)])
        if replacement:
            db[collection].update_one({"_id": replacement["_id"]},
                                      {"$set": {"is_default": True, "updated_at": _now()}})
    return True


# ---------------------- Addresses ----------------------

def create_address(db, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    return _insert(db, ADDRESSES, user_id, fields)


def update_address(db, user_id: str, address_id: ObjectId, fields: Dict[str, Any]):
    return _update(db, ADDRESSES, user_id, address_id, fields)


def set_default_address(db, user_id: str, address_id: ObjectId):
    return _set_default(db, ADDRESSES, user_id, address_id)


def delete_address(db, user_id: str, address_id: ObjectId) -> bool:
    return _delete(db, ADDRESSES, user_id, address_id)


def default_address(db, user_id: str) -> Optional[Dict[str, Any]]:
    return db[ADDRESSES].find_one({"user_id": user_id, "is_default": True})


# ---------------------- Payment methods ----------------------

def create_payment_method(db, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    return _insert(db, PAYMENT_METHODS, user_id, fields)


def update_payment_method(db, user_id: str, method_id: ObjectId, fields: Dict[str, Any]):
    return _update(db, PAYMENT_METHODS, user_id, method_id, fields)


def set_default_payment_method(db, user_id: str, method_id: ObjectId):
    return _set_default(db, PAYMENT_METHODS, user_id, method_id)


def delete_payment_method(db, user_id: str, method_id: ObjectId) -> bool:
    return _delete(db, PAYMENT_METHODS, user_id, method_id)
