"""
Shared fixtures: mocked Motor collections and sample documents.
"""
import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId

BUYER_ID = ObjectId("665f1c2e9b1e8a3d4c5b6a70")
ADMIN_ID = ObjectId("665f1c2e9b1e8a3d4c5b6a7a")
SELLER_ID = ObjectId("665f1c2e9b1e8a3d4c5b6a72")
OTHER_SELLER_ID = ObjectId("665f1c2e9b1e8a3d4c5b6a7b")
ORDER_OID = ObjectId("665f1c2e9b1e8a3d4c5b6a73")


def make_cursor(documents):
    """Mock of a Motor cursor returning ``documents`` from to_list()."""
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=documents)
    return cursor


def make_update_result(modified_count=1):
    result = MagicMock()
    result.modified_count = modified_count
    result.matched_count = modified_count
    return result


@pytest.fixture
def mock_db():
    """Database mock with the collections the services touch."""
    db = MagicMock()
    for name in ("orders", "products", "users", "refunds", "webhook_events"):
        collection = MagicMock()
        collection.find_one = AsyncMock(return_value=None)
        collection.find_one_and_update = AsyncMock(return_value=None)
        collection.update_one = AsyncMock(return_value=make_update_result())
        collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=ObjectId()))
        collection.find = MagicMock(return_value=make_cursor([]))
        setattr(db, name, collection)
    return db


@pytest.fixture
def buyer():
    return {
        "_id": BUYER_ID,
        "first_name": "Asha",
        "last_name": "Rao",
        "email": "asha@example.com",
        "phone": "9876543210",
        "role": "buyer",
        "is_active": True
    }


@pytest.fixture
def other_buyer():
    return {
        "_id": ObjectId(),
        "first_name": "Vikram",
        "last_name": "Shah",
        "email": "vikram@example.com",
        "role": "buyer",
        "is_active": True
    }


@pytest.fixture
def admin():
    return {
        "_id": ADMIN_ID,
        "first_name": "Site",
        "last_name": "Admin",
        "email": "admin@example.com",
        "role": "admin",
        "is_active": True
    }


def make_product(price, stock, seller_id=SELLER_ID, name="Organic Tomatoes", **overrides):
    product = {
        "_id": ObjectId(),
        "name": name,
        "price": price,
        "stock": stock,
        "sales": 0,
        "unit": "kg",
        "image": "https://example.com/tomato.jpg",
        "seller_id": seller_id,
        "seller_name": "Ravi Kumar",
        "farm_name": "Green Acres",
        "status": "Approved",
        "is_available": True
    }
    product.update(overrides)
    return product


def make_order(**overrides):
    order = {
        "_id": ORDER_OID,
        "order_id": "ORD12345678AB3K",
        "buyer_id": str(BUYER_ID),
        "buyer_name": "Asha Rao",
        "buyer_email": "asha@example.com",
        "items": [
            {
                "product_id": "665f1c2e9b1e8a3d4c5b6a81",
                "seller_id": str(SELLER_ID),
                "product_name": "Organic Tomatoes",
                "price": 100.0,
                "quantity": 2,
                "total": 200.0
            },
            {
                "product_id": "665f1c2e9b1e8a3d4c5b6a82",
                "seller_id": str(SELLER_ID),
                "product_name": "Spinach",
                "price": 50.0,
                "quantity": 1,
                "total": 50.0
            }
        ],
        "subtotal": 250.0,
        "tax": 45.0,
        "shipping": 100.0,
        "total_amount": 395.0,
        "status": "Pending",
        "payment_status": "Pending",
        "payment_method": "razorpay",
        "razorpay_order_id": None,
        "razorpay_payment_id": None,
        "logistics": [
            {
                "status": "Order Placed",
                "description": "Your order has been successfully placed",
                "timestamp": datetime(2026, 1, 1, 10, 0),
                "location": "Online"
            }
        ],
        "created_at": datetime(2026, 1, 1, 10, 0),
        "updated_at": datetime(2026, 1, 1, 10, 0)
    }
    order.update(overrides)
    return order


def apply_update(document, update):
    """Apply a $set/$push update to a copy of ``document`` (enough for assertions)."""
    result = dict(document)
    result.update(update.get("$set", {}))
    for field, value in update.get("$push", {}).items():
        result[field] = list(result.get(field, [])) + [value]
    return result
