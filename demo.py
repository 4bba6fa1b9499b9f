#!/usr/bin/env python3
"""
Demo script walking one batch through its whole lifecycle
Run this after starting the backend server
"""
import asyncio
import uuid
import aiohttp

BACKEND_URL = "http://localhost:8000"

def _auth(username: str) -> dict:
    # Demo tokens are the usernames themselves
    return {"Authorization": f"Bearer {username}"}

async def _call(session, method: str, path: str, username: str = None, payload: dict = None):
    headers = _auth(username) if username else {}
    async with session.request(method, f"{BACKEND_URL}{path}", json=payload, headers=headers) as response:
        data = await response.json()
        marker = "✅" if response.status < 400 else "❌"
        print(f"   {marker} {method} {path} -> {response.status}")
        return response.status, data

async def run_demo():
    batch_id = f"DEMO-{uuid.uuid4().hex[:8].upper()}"

    async with aiohttp.ClientSession() as session:
        print("🧪 Walking a batch through the SupplyChain ledger\n")

        print("1. Health check...")
        _, health = await _call(session, "GET", "/health")
        print(f"   Roles: {health.get('roles')}")

        print(f"\n2. Manufacturer creates {batch_id}...")
        await _call(session, "POST", "/batches", "manufacturer", {
            "batchId": batch_id,
            "quantity": 100,
            "ownerRef": "demo-user",
            "label": "Demo batch",
            "location": "Plant A",
        })

        steps = [
            ("manufacturer", "dispatched by manufacturer", "Highway 9"),
            ("distributor", "delivered to distributor", "Depot"),
            ("distributor", "dispatched by distributor", "City route"),
            ("retailer", "delivered to retailer", "Store 12"),
            ("retailer", "delivered to consumer", "Checkout"),
        ]
        for number, (username, status, location) in enumerate(steps, start=3):
            print(f"\n{number}. {username} marks batch '{status}' at {location}...")
            await _call(session, "POST", f"/batches/{batch_id}/status", username, {
                "status": status,
                "location": location,
            })

        print("\n8. Replaying a step must be rejected...")
        _, error = await _call(session, "POST", f"/batches/{batch_id}/status", "retailer", {
            "status": "delivered to consumer",
            "location": "Checkout",
        })
        print(f"   Reason: {error.get('detail')}")

        print("\n9. Audit trail...")
        _, history = await _call(session, "GET", f"/batches/{batch_id}/history")
        for entry in history.get("history", []):
            print(f"   • {entry}")

        print("\n🎉 Demo completed!")

if __name__ == "__main__":
    print("Make sure the backend server is running on http://localhost:8000")
    print("Start it with: python main.py\n")
    asyncio.run(run_demo())
