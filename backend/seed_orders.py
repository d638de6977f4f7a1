"""
Database seeding script for demo orders.

Creates a few storefront orders for two sellers so labels can be issued
against a fresh database. Run this script after the database is set up.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.order import Order
from backend.app.models.shipping_label import ShippingLabel  # noqa: F401 (registers table)
from backend.app.models.shipping_status_event import ShippingStatusEvent  # noqa: F401
from backend.app.models.audit_log import AuditLog  # noqa: F401
from sqlalchemy import select

DEMO_ORDERS = [
    ("demo-order-1", "ORD-DEMO-1001", "seller-demo"),
    ("demo-order-2", "ORD-DEMO-1002", "seller-demo"),
    ("demo-order-3", "ORD-DEMO-1003", "seller-demo"),
    ("demo-order-4", "ORD-DEMO-2001", "seller-other"),
]


async def seed_orders():
    """
    Seed demo orders.

    Creates:
    - 3 orders for seller-demo
    - 1 order for seller-other (for ownership checks)
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting order seeding...")

        result = await db.execute(
            select(Order).where(Order.id == DEMO_ORDERS[0][0])
        )
        if result.scalar_one_or_none():
            print("ℹ️  Demo orders already exist, skipping seeding")
            return

        for order_id, order_number, seller_id in DEMO_ORDERS:
            db.add(Order(id=order_id, order_number=order_number, seller_id=seller_id))
            print(f"✅ Created order {order_number} ({order_id}) for {seller_id}")

        await db.commit()

        print("\n🎉 Order seeding completed successfully!")
        print("\nIssue a label with a SELLER token carrying user_id=seller-demo, e.g.:")
        print("  POST /v1/shipping/labels  {\"order_id\": \"demo-order-1\", ...}")


if __name__ == "__main__":
    asyncio.run(seed_orders())
