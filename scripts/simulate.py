"""
Order Flow Simulation Script

Fires concurrent orders at a running API, then walks each created order
through a few staff status updates.
Run from project root after seeding:

    python scripts/seed.py
    python scripts/simulate.py --customer-token <jwt> --staff-token <jwt>

Menu and add-on ids/prices default to what scripts/seed.py creates on an
empty database.
"""

import argparse
import asyncio
import random
import sys
import time
from typing import Any

import httpx

API_BASE_URL = "http://localhost:8001"
TOTAL_ORDERS = 20

# id -> price, as created by scripts/seed.py
MENU_ITEMS = {1: 14.99, 2: 16.99, 3: 8.99, 4: 5.99, 5: 7.99}
ADDONS = {1: 1.50, 2: 0.75, 3: 2.50, 4: 0.99}
STAFF_STATUSES = ["PREPARING", "READY", "COMPLETED"]


def generate_order_payload(branch_id: int) -> dict[str, Any]:
    """Random order with a total matching the server-side pricing."""
    items = []
    subtotal = 0.0
    for menu_item_id in random.sample(sorted(MENU_ITEMS), k=random.randint(1, 3)):
        quantity = random.randint(1, 3)
        addon_ids = random.sample(sorted(ADDONS), k=random.randint(0, 2))
        unit_price = MENU_ITEMS[menu_item_id] + sum(ADDONS[a] for a in addon_ids)
        subtotal += unit_price * quantity
        items.append({
            "menuItem": {"id": menu_item_id},
            "quantity": quantity,
            "addons": [{"name": "Extras", "items": [{"id": a} for a in addon_ids]}] if addon_ids else [],
        })

    platform_fee = 0.99
    subtotal = round(subtotal, 2)
    return {
        "branchId": branch_id,
        "items": items,
        "deliveryType": random.choice(["PICKUP", "DELIVERY"]),
        "subtotal": subtotal,
        "platformFee": platform_fee,
        "total": round(subtotal + platform_fee, 2),
    }


async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    branch_id: int,
) -> dict[str, Any]:
    payload = generate_order_payload(branch_id)
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/order", json=payload, timeout=30.0)
    except httpx.HTTPError as e:
        return {"order_num": order_num, "success": False, "error": str(e)[:100],
                "time": round(time.time() - start_time, 3)}

    elapsed = round(time.time() - start_time, 3)
    if response.status_code != 200:
        return {"order_num": order_num, "success": False, "error": response.text[:100], "time": elapsed}

    data = response.json()
    return {
        "order_num": order_num,
        "success": True,
        "order_id": data["order"]["id"],
        "total": data["order"]["total"],
        "payment_intent_id": data["paymentIntentId"],
        "time": elapsed,
    }


async def advance_order(client: httpx.AsyncClient, order_id: int) -> bool:
    for status in STAFF_STATUSES:
        response = await client.put(f"{API_BASE_URL}/order", json={"orderId": order_id, "status": status})
        if response.status_code != 200:
            print(f"   ⚠️ Order #{order_id} -> {status}: {response.status_code} {response.text[:80]}")
            return False
    return True


async def run_simulation(args: argparse.Namespace) -> dict[str, Any]:
    print("=" * 70)
    print(f"🚀 Sending {args.orders} concurrent orders to branch #{args.branch_id}")
    print("=" * 70)

    start = time.time()
    customer_headers = {"Authorization": f"Bearer {args.customer_token}"}
    async with httpx.AsyncClient(headers=customer_headers) as client:
        results = await asyncio.gather(*[
            send_order(client, n, args.branch_id) for n in range(1, args.orders + 1)
        ])
    total_time = round(time.time() - start, 2)

    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print(f"✅ Successful: {len(successful)}/{len(results)}")
    print(f"⏱️  Total Time: {total_time}s")
    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"   Average Response: {avg_time}s")
        print(f"   💰 Total Value: ${sum(r['total'] for r in successful):.2f}")
    for f in failed[:5]:
        print(f"   ❌ Order {f['order_num']}: {f['error']}")

    if args.staff_token and successful:
        print("\n🧑‍🍳 Advancing orders through staff statuses...")
        staff_headers = {"Authorization": f"Bearer {args.staff_token}"}
        async with httpx.AsyncClient(headers=staff_headers) as client:
            advanced = await asyncio.gather(*[advance_order(client, r["order_id"]) for r in successful])
        print(f"   {sum(advanced)}/{len(advanced)} orders reached {STAFF_STATUSES[-1]}")

    return {"total": len(results), "successful": len(successful), "failed": len(failed), "total_time": total_time}


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Order Flow Simulation Script")
    parser.add_argument("--customer-token", required=True, help="Bearer token of a customer")
    parser.add_argument("--staff-token", help="Bearer token of a manager/admin of the branch")
    parser.add_argument("--branch-id", type=int, default=1, help="Branch to order from")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    args = parser.parse_args()

    summary = asyncio.run(run_simulation(args))
    sys.exit(0 if summary["failed"] == 0 else 1)
