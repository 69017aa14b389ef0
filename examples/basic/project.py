"""
Basic tmql project.

    tmql validate examples/basic/project.py
    tmql plan examples/basic/project.py
    tmql run examples/basic/project.py --env prod

The engine is the in-memory testing engine seeded with a few documents; the
transforms stand in for the aggregation stages it does not interpret.
"""

from tmql_orchestration import Project
from tmql_orchestration.testing import MemoryEngine

from models.sources import order_events
from models.transformations import user_summary

SEED = {
    "users": [
        {"_id": 1, "name": "Ann", "email": "ann@example.com", "active": True},
        {"_id": 2, "name": "Bob", "email": "bob@example.com", "active": False},
    ],
    "orders": [
        {"_id": "o1", "user_id": 1, "product_id": "p1", "amount": 30, "status": "paid"},
        {"_id": "o2", "user_id": 1, "product_id": "p2", "amount": 12, "status": "paid"},
        {"_id": "o3", "user_id": 2, "product_id": "p1", "amount": 30, "status": "open"},
    ],
    "products": [{"_id": "p1", "title": "Kettle"}, {"_id": "p2", "title": "Mug"}],
}


def _user_orders(docs, aux):
    active = {user["_id"]: user for user in aux["active_users"]}
    return [dict(order, user=active[order["user_id"]]) for order in docs if order["user_id"] in active]


def _user_summary(docs, aux):
    summary = {}
    for order in docs:
        row = summary.setdefault(order["user_id"], {"_id": order["user_id"], "total_orders": 0, "total_amount": 0})
        row["total_orders"] += 1
        row["total_amount"] += order["amount"]
    return list(summary.values())


TRANSFORMS = {
    "active_users": lambda docs, aux: [d for d in docs if d["active"]],
    "paid_orders": lambda docs, aux: [d for d in docs if d["status"] == "paid"],
    "order_events": lambda docs, aux: [
        {"_id": f"{d['_id']}:{d['status']}", "order_id": d["_id"], "status": d["status"]} for d in docs
    ],
    "user_orders": _user_orders,
    "user_summary": _user_summary,
}


def build_project(config):
    return Project([user_summary, order_events], config=config)


def build_engine(config):
    return MemoryEngine(SEED, transforms=TRANSFORMS)
