from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager, suppress

from fastapi import Body, Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from api.dashboard_controller import DashboardController
from api.security import require_rest_token, require_ws_token, use_token_env
from cryptodash.core.logging import setup_logging
from cryptodash.data.models import Granularity


# price ticks are streamed separately, so the snapshot skips them
SNAPSHOT_CATEGORIES = ("SYSTEM", "SELECTION", "MARKETS", "CHART", "DETAIL", "RECOMMENDATION")


def _is_dev_mode() -> bool:
    return os.getenv("APP_ENV", "prod").lower() == "dev"


controller = DashboardController(os.getenv("CRYPTODASH_CONFIG", "config.toml"))
use_token_env(controller.config.api.token_env)


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging(os.getenv("CRYPTODASH_LOG_LEVEL", "INFO"))
    await controller.attach()
    yield
    await controller.shutdown()


app = FastAPI(title="Crypto Dashboard API", version="0.1", lifespan=lifespan)

if _is_dev_mode():
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _granularity(value: str) -> str:
    try:
        return Granularity(value).value
    except ValueError:
        raise HTTPException(status_code=400, detail=f"unsupported granularity: {value}") from None


@app.get("/api/status", dependencies=[Depends(require_rest_token)])
async def status():
    return await controller.get_status()


@app.get("/api/markets", dependencies=[Depends(require_rest_token)])
async def markets(q: str = Query(default="")):
    return await controller.get_markets(q)


@app.post("/api/markets/refresh", dependencies=[Depends(require_rest_token)])
async def refresh_markets():
    return await controller.refresh_markets()


@app.get("/api/tracked", dependencies=[Depends(require_rest_token)])
async def tracked():
    return await controller.get_tracked()


@app.post("/api/tracked", dependencies=[Depends(require_rest_token)])
async def track(payload: dict = Body(...)):
    if not payload.get("id") or not payload.get("symbol"):
        raise HTTPException(status_code=400, detail="id and symbol are required")
    return await controller.track(payload)


@app.post("/api/tracked/toggle", dependencies=[Depends(require_rest_token)])
async def toggle(payload: dict = Body(...)):
    if not payload.get("id") or not payload.get("symbol"):
        raise HTTPException(status_code=400, detail="id and symbol are required")
    return await controller.toggle(payload)


@app.delete("/api/tracked/{coin_id}", dependencies=[Depends(require_rest_token)])
async def untrack(coin_id: str):
    return await controller.untrack(coin_id)


@app.post("/api/tracked/replace/{coin_id}", dependencies=[Depends(require_rest_token)])
async def replace(coin_id: str):
    return await controller.replace(coin_id)


@app.post("/api/tracked/cancel", dependencies=[Depends(require_rest_token)])
async def cancel_pending():
    return await controller.cancel_pending()


@app.get("/api/prices", dependencies=[Depends(require_rest_token)])
async def prices():
    return await controller.get_prices()


@app.get("/api/charts/{coin_id}", dependencies=[Depends(require_rest_token)])
async def chart(
    coin_id: str,
    symbol: str = Query(..., min_length=1),
    granularity: str = Query(default="1d"),
    refresh: bool = Query(default=True),
):
    return await controller.get_chart(coin_id, symbol, _granularity(granularity), refresh=refresh)


@app.get("/api/coins/{coin_id}", dependencies=[Depends(require_rest_token)])
async def coin_detail(coin_id: str):
    return await controller.get_coin_detail(coin_id)


@app.post("/api/recommendations/{coin_id}", dependencies=[Depends(require_rest_token)])
async def request_recommendation(coin_id: str):
    return await controller.request_recommendation(coin_id)


@app.get("/api/recommendations/{coin_id}", dependencies=[Depends(require_rest_token)])
async def recommendation(coin_id: str):
    return await controller.get_recommendation(coin_id)


@app.get("/api/events", dependencies=[Depends(require_rest_token)])
async def events(
    limit: int = Query(default=200, ge=1, le=2000),
    category: list[str] | None = Query(default=None),
    key: str | None = Query(default=None),
):
    return {"items": controller.bus.snapshot(limit=limit, categories=category, key=key)}


@app.websocket("/ws/events")
async def ws_events(websocket: WebSocket):
    await websocket.accept()
    try:
        await require_ws_token(websocket)
    except RuntimeError:
        return

    queue = await controller.bus.subscribe(maxsize=256)
    controller.register_ws()

    initial = {
        "type": "snapshot",
        "status": await controller.get_status(),
        "dashboard": controller.snapshot(),
        "events": controller.bus.snapshot(limit=80, categories=SNAPSHOT_CATEGORIES),
    }
    await websocket.send_json(initial)

    async def producer() -> None:
        while True:
            event = await queue.get()
            try:
                await websocket.send_json({"type": "event", "event": event})
            except (WebSocketDisconnect, RuntimeError):
                break

    async def ticker() -> None:
        while True:
            await asyncio.sleep(1.0)
            try:
                await websocket.send_json({"type": "prices", "prices": await controller.get_prices()})
            except (WebSocketDisconnect, RuntimeError):
                break

    async def heartbeat() -> None:
        while True:
            await asyncio.sleep(10)
            try:
                await websocket.send_json({"type": "ping"})
            except (WebSocketDisconnect, RuntimeError):
                break

    async def consumer() -> None:
        while True:
            try:
                payload = await websocket.receive_json()
            except WebSocketDisconnect:
                break
            if payload.get("type") == "pong":
                continue

    tasks = [
        asyncio.create_task(producer()),
        asyncio.create_task(ticker()),
        asyncio.create_task(heartbeat()),
        asyncio.create_task(consumer()),
    ]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        await controller.bus.unsubscribe(queue)
        controller.unregister_ws()
