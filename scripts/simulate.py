"""
Lunch Rush Simulation Script

Fires many concurrent table orders at a running API, walks each one through
the kitchen lifecycle and bills it, then prints the daily report.
Run from project root: python scripts/simulate.py
"""

import argparse
import asyncio
import random
import sys
import time
from datetime import datetime
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:4001"
TOTAL_ORDERS = 30

CUSTOMER_NAMES = ["Asha", "Ravi", "Meera", "Kabir", "Isha", "Arjun", "Zoya", "Dev", "Tara", "Neel"]
MENU_ITEMS = [
    {"id": "tea-1", "name": "Masala Chai", "price": 30},
    {"id": "tea-2", "name": "Ginger Tea", "price": 35},
    {"id": "cof-1", "name": "Filter Coffee", "price": 45},
    {"id": "snack-1", "name": "Samosa", "price": 20},
    {"id": "snack-2", "name": "Vada Pav", "price": 40},
    {"id": "snack-3", "name": "Paneer Roll", "price": 90},
    {"id": "sweet-1", "name": "Gulab Jamun", "price": 50},
]
KITCHEN_FLOW = ["PREPARING", "READY"]


def generate_random_items() -> list[dict]:
    """Generate random order items."""
    items = []
    for item in random.sample(MENU_ITEMS, random.randint(1, 4)):
        items.append({**item, "quantity": random.randint(1, 3)})
    return items


def generate_order_payload() -> dict[str, Any]:
    return {
        "tableNumber": random.randint(1, 12),
        "customerName": random.choice(CUSTOMER_NAMES),
        "customerPhone": random.choice([None, f"+9198{random.randint(10000000, 99999999)}"]),
        "items": generate_random_items(),
    }


async def serve_table(client: httpx.AsyncClient, order_num: int) -> dict[str, Any]:
    """Place an order, cook it, bill it."""
    payload = generate_order_payload()
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/orders", json=payload, timeout=30.0)
        if response.status_code != 201:
            raise RuntimeError(f"order: {response.text[:100]}")
        order_id = response.json()["orderId"]

        for status in KITCHEN_FLOW:
            await asyncio.sleep(random.uniform(0, 0.2))
            response = await client.patch(f"{API_BASE_URL}/orders/{order_id}", json={"status": status})
            if response.status_code != 200:
                raise RuntimeError(f"{status}: {response.text[:100]}")

        response = await client.post(
            f"{API_BASE_URL}/bills",
            json={**payload, "orderId": order_id},
            timeout=30.0,
        )
        if response.status_code != 201:
            raise RuntimeError(f"bill: {response.text[:100]}")
        bill = response.json()["bill"]

        return {
            "order_num": order_num,
            "success": True,
            "order_id": order_id,
            "total": bill["total"],
            "time": round(time.time() - start_time, 3),
        }
    except (httpx.HTTPError, RuntimeError) as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    print("=" * 70)
    print("☕ LUNCH RUSH SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()
    async with httpx.AsyncClient() as client:
        results = await asyncio.gather(*[serve_table(client, i + 1) for i in range(num_orders)])
        report = (await client.get(f"{API_BASE_URL}/reports/daily")).json()

    total_time = round(time.time() - start_time, 2)
    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]

    print(f"\n✅ Served: {len(successful)}/{num_orders}")
    print(f"❌ Failed: {len(failed)}/{num_orders}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"\n📈 Average table turnaround: {avg_time}s")
        print(f"   💰 Billed: {sum(r['total'] for r in successful)}")

    if failed:
        print("\n⚠️  Failed Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("📊 DAILY REPORT")
    print("=" * 70)
    print(f"   Orders: {report.get('totalOrders')}")
    print(f"   Revenue: {report.get('totalRevenue')}")
    print(f"   Average: {report.get('averageOrderValue')}")
    for item in report.get("topItems", [])[:5]:
        print(f"   🏆 {item['name']}: {item['quantity']}")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


async def check_health() -> bool:
    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(f"{API_BASE_URL}/health")
        except httpx.HTTPError as e:
            print(f"❌ API unreachable: {e}")
            return False
    data = response.json()
    print(f"✅ Status: {data.get('status')}")
    print(f"   Storage: {data.get('storage')}")
    print(f"   Notifications: {data.get('notificationService')}")
    return response.status_code == 200


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Lunch Rush Simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url
    if not asyncio.run(check_health()):
        sys.exit(1)
    asyncio.run(run_simulation(args.orders))
