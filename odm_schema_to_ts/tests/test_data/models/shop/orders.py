from datetime import datetime

from odm_schema_to_ts.odm import Schema, Types, model

order_schema = Schema(
    {
        "orderNumber": {"type": str, "unique": True},
        "user": {"type": Types.ObjectId, "ref": "User"},
        "items": [
            {
                "product": {"type": Types.ObjectId, "ref": "Product"},
                "quantity": {"type": int, "min": 1},
                "price": float,
            }
        ],
        "status": {
            "type": str,
            "enum": ["pending", "processing", "shipped", "delivered", "cancelled", "refunded"],
            "default": "pending",
        },
        "payment": {
            "method": {"type": str, "enum": ["credit_card", "paypal", "stripe"]},
            "paidAt": {"type": datetime, "required": False},
        },
        "notes": {"type": str, "required": False},
    }
)

Order = model("Order", order_schema)
