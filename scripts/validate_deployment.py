"""
Pre-Deploy and Smoke Test Script.

Validates the deployed code in-process (TestClient, so no auth server or
open port is needed) and executes a full shipping smoke test:
1. Health Check
2. Courier catalog and rate quote
3. Label issuance -> status update -> public tracking
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from fastapi.testclient import TestClient
from backend.app.main import app
from backend.app.core.jwt import issue_access_token
from backend.app.db.session import engine
from backend.seed_orders import seed_orders, DEMO_ORDERS

API = "/v1/shipping"
FROM_ADDRESS = {
    "name": "Demo Seller",
    "phone": "9876543210",
    "address_line_1": "14 Chandni Chowk",
    "city": "New Delhi",
    "state": "Delhi",
    "pincode": "110006",
}
TO_ADDRESS = {
    "name": "Demo Buyer",
    "phone": "9812345678",
    "address_line_1": "22 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
}


def print_step(step, msg):
    print(f"[{step}] {msg}")

def fail(msg):
    print(f"❌ FAILURE: {msg}")
    sys.exit(1)

def success(msg):
    print(f"✅ {msg}")


async def _seed():
    await seed_orders()
    # Pooled connections are bound to this event loop, the TestClient runs its own
    await engine.dispose()


def main():
    print("🚀 Starting Deployment Validation...")

    asyncio.run(_seed())

    with TestClient(app) as client:
        # 1. Health Check
        print_step("PRE-DEPLOY", "Checking /health...")
        response = client.get("/health")
        if response.status_code != 200:
            fail(f"Health check failed: {response.status_code} {response.text}")
        success("Health check passed")

        # 2. Seller token (identity is issued by the storefront auth service)
        print_step("AUTH", "Generating Seller Token...")
        seller_id = DEMO_ORDERS[0][2]
        token = issue_access_token(seller_id, "SELLER", subject="deploy_bot")
        headers = {"Authorization": f"Bearer {token}"}

        # 3. Catalog and rates
        print_step("VERIFY", "Checking courier catalog...")
        res = client.get(f"{API}/couriers")
        if res.status_code != 200 or not res.json():
            fail(f"Courier catalog failed: {res.status_code} {res.text}")
        success(f"{len(res.json())} courier partners configured")

        print_step("VERIFY", "Quoting rates...")
        res = client.post(
            f"{API}/rates",
            json={"from_pincode": "110006", "to_pincode": "560001", "weight_kg": 1.2},
            headers=headers,
        )
        if res.status_code != 200 or not res.json()["available"]:
            fail(f"Rate quote failed: {res.status_code} {res.text}")
        cheapest = res.json()["rates"][0]
        success(f"Cheapest option: {cheapest['courier_name']} {cheapest['service_type']} at {cheapest['cost']}")

        # 4. Smoke Test: Label Flow
        print_step("SMOKE", "Running Label -> Status -> Tracking Flow...")
        order_id = DEMO_ORDERS[0][0]
        res = client.post(
            f"{API}/labels",
            json={
                "order_id": order_id,
                "rate": cheapest,
                "from_address": FROM_ADDRESS,
                "to_address": TO_ADDRESS,
                "weight_kg": 1.2,
            },
            headers=headers,
        )
        if res.status_code == 409:
            print("⚠️ Demo order already has a label, reusing it")
            res = client.get(f"{API}/labels", headers=headers)
            labels = [l for l in res.json()["labels"] if l["order_id"] == order_id]
            if not labels:
                fail("Label conflict reported but no label listed")
            label = labels[0]
        elif res.status_code == 201:
            label = res.json()
            success(f"Label issued: {label['tracking_number']}")
        else:
            fail(f"Label issuance failed: {res.status_code} {res.text}")

        tracking_number = label["tracking_number"]
        if label["status"] == "created":
            res = client.patch(
                f"{API}/labels/{tracking_number}/status",
                json={"status": "picked_up", "location": "Smoke Test Hub"},
                headers=headers,
            )
            if res.status_code != 204:
                fail(f"Status update failed: {res.status_code} {res.text}")
            success("Status updated to picked_up")

        res = client.get(f"{API}/track/{tracking_number}")
        if res.status_code != 200:
            fail(f"Tracking lookup failed: {res.status_code} {res.text}")
        tracking = res.json()
        success(f"Tracking shows {tracking['current_status']} with {len(tracking['events'])} events")

    success("Deployment Validation Passed!")

if __name__ == "__main__":
    main()
