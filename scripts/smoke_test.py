from __future__ import annotations

import asyncio
import json
import os

import httpx
import websockets

API = os.getenv("API_URL", "http://127.0.0.1:8000")
TOKEN = os.getenv("CRYPTODASH_API_TOKEN", "dev-token")


async def main() -> None:
    headers = {"X-API-TOKEN": TOKEN}
    async with httpx.AsyncClient(timeout=30) as client:
        markets = await client.get(f"{API}/api/markets", headers=headers, params={"q": "btc"})
        markets.raise_for_status()
        items = markets.json()["items"]
        print("markets:", [c["id"] for c in items[:5]])
        if not items:
            raise RuntimeError("Market listing is empty")

        coin = items[0]
        tracked = await client.post(
            f"{API}/api/tracked",
            headers=headers,
            json={"id": coin["id"], "symbol": coin["symbol"], "name": coin["name"], "image": coin.get("image", "")},
        )
        tracked.raise_for_status()
        print("tracked:", tracked.json()["status"])

        ws_url = API.replace("http", "ws") + f"/ws/events?token={TOKEN}"
        async with websockets.connect(ws_url, ping_interval=None) as ws:
            await ws.recv()  # snapshot
            event = None
            for _ in range(20):
                payload = json.loads(await ws.recv())
                if payload.get("type") == "event" and payload["event"]["category"] == "PRICES":
                    event = payload["event"]
                    break
            if not event:
                raise RuntimeError("No price event received")
            print("event:", event)

        chart = await client.get(f"{API}/api/charts/{coin['id']}", headers=headers, params={"symbol": coin["symbol"], "granularity": "1h"})
        chart.raise_for_status()
        print("chart points:", len(chart.json()["points"]))

        prices = await client.get(f"{API}/api/prices", headers=headers)
        prices.raise_for_status()
        print("prices:", prices.json()["current"])

        untrack = await client.delete(f"{API}/api/tracked/{coin['id']}", headers=headers)
        untrack.raise_for_status()
        print("untrack:", untrack.json()["status"])


if __name__ == "__main__":
    asyncio.run(main())
