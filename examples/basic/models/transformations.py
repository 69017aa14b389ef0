"""
Downstream models - dependencies through sources and auxiliary lookups.

Demonstrates:
- A model as another model's primary source
- Auxiliary references via $lookup and $unionWith
"""

from tmql_orchestration import model

from models.sources import active_users, paid_orders, products

user_orders = model(
    "user_orders",
    paid_orders,
    [
        {"$lookup": {"from": active_users, "localField": "user_id", "foreignField": "_id", "as": "user"}},
        {"$unwind": "$user"},
        {"$lookup": {"from": products, "localField": "product_id", "foreignField": "_id", "as": "product"}},
    ],
    description="Paid orders joined with their user and product",
)

user_summary = model(
    "user_summary",
    user_orders,
    [
        {
            "$group": {
                "_id": "$user_id",
                "total_orders": {"$sum": 1},
                "total_amount": {"$sum": "$amount"},
            }
        }
    ],
    description="Order statistics per user",
)
