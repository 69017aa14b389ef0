"""
Base collections and first-level models.

Demonstrates:
- Declaring base collections
- The three materializations (replace, upsert, append)
"""

from tmql_orchestration import Collection, model
from tmql_orchestration.core.materialization import append, upsert

users = Collection("users")
orders = Collection("orders")
products = Collection("products")

active_users = model(
    "active_users",
    users,
    [{"$match": {"active": True}}, {"$project": {"name": 1, "email": 1}}],
    description="Users that can place orders",
)

paid_orders = model(
    "paid_orders",
    orders,
    [{"$match": {"status": "paid"}}],
    materialize=upsert("_id"),
    description="Paid orders, updated in place on every run",
)

order_events = model(
    "order_events",
    orders,
    [{"$project": {"_id": {"$concat": ["$_id", ":", "$status"]}, "order_id": "$_id", "status": 1}}],
    materialize=append("_id"),
    description="One event per order status; rerunning with unchanged data conflicts",
)
