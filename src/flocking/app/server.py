from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Dict, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..logging_config import configure_logging
from ..sim.core.config import ConfigError, SimulationConfig, load_config
from ..sim.core.world import World

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SimulationController:
    """Runs the tick loop and is the only writer of simulation state.

    Ticks, resets, configuration changes and predator updates all take
    ``_lock``, so none of them can land in the middle of a tick.
    """

    def __init__(self, config: SimulationConfig, broadcast_interval: int = 1, max_pending: int = 120):
        self.config = config
        self.world = World(config)
        self.broadcast_interval = max(1, broadcast_interval)
        self.running = False
        self.tick = 0
        self.speed_multiplier = 1.0
        self.frame_seconds = 1.0 / 60.0
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        # unacknowledged snapshots beyond this many are dropped oldest first
        self._snapshot_queue: deque[QueuedSnapshot] = deque(maxlen=max(1, max_pending))
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._broadcast_task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._broadcast_task is None:
            self._broadcast_task = asyncio.create_task(self._loop())
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def reset(self) -> None:
        async with self._lock:
            self.world.reset()
            self.tick = 0
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        await self._broadcast_snapshot()

    async def step_once(self) -> None:
        async with self._lock:
            self.world.step(self.tick)
            self.tick += 1
        if self.tick % self.broadcast_interval == 0:
            await self._broadcast_snapshot()

    async def update_config(self, changes: Dict[str, Any]) -> bool:
        """Merge ``changes`` onto the running config; raises ConfigError before touching the world."""
        async with self._lock:
            new_config = load_config(changes, base=self.config)
            was_reset = self.world.apply_config(new_config)
            self.config = new_config
            if was_reset:
                self.tick = 0
        if was_reset:
            async with self._queue_lock:
                self._snapshot_queue.clear()
            for client in self._client_last_sent:
                self._client_last_sent[client] = -1
        return was_reset

    async def set_predator(self, x: float | None, y: float | None) -> None:
        async with self._lock:
            if x is None or y is None:
                self.world.set_predator(None)
            else:
                self.world.set_predator((float(x), float(y)))

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.frame_seconds / self.speed_multiplier)
            if not self.running:
                continue
            await self.step_once()

    async def acknowledge(self, tick: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].tick <= tick:
                self._snapshot_queue.popleft()

    def state_payload(self) -> Dict[str, Any]:
        snapshot = self.world.snapshot(self.tick)
        return {
            "tick": snapshot.tick,
            "metrics": asdict(snapshot.metrics),
            "agents": snapshot.agents,
            "world": asdict(snapshot.world),
            "metadata": asdict(snapshot.metadata),
            "fields": asdict(snapshot.fields),
        }

    def _serialize_snapshot(self) -> QueuedSnapshot:
        payload = {"type": "snapshot", "tick": self.tick, "payload": self.state_payload()}
        return QueuedSnapshot(tick=self.tick, payload=json.dumps(payload))

    async def _send_pending_snapshots(self, client: WebSocket) -> None:
        last_sent = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.tick > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.tick
        self._client_last_sent[client] = last_sent

    async def _broadcast_snapshot(self) -> None:
        queued = self._serialize_snapshot()
        async with self._queue_lock:
            self._snapshot_queue.append(queued)
        stale: Set[WebSocket] = set()
        for client in self.clients:
            try:
                await self._send_pending_snapshots(client)
            except WebSocketDisconnect:
                stale.add(client)
        for client in stale:
            logger.info("Dropping disconnected client")
            self.clients.discard(client)
            self._client_last_sent.pop(client, None)
        if self._client_last_sent:
            # every connected client already has these
            delivered = min(self._client_last_sent.values())
            async with self._queue_lock:
                while self._snapshot_queue and self._snapshot_queue[0].tick <= delivered:
                    self._snapshot_queue.popleft()


app = FastAPI(title="Flocking Simulation")
controller = SimulationController(SimulationConfig())


@app.on_event("startup")
async def _startup() -> None:
    configure_logging(include_uvicorn=True)
    await controller.start()


@app.get("/api/status")
async def status() -> JSONResponse:
    metrics = controller.world.snapshot(controller.tick).metrics
    return JSONResponse(
        {
            "running": controller.running,
            "tick": controller.tick,
            "population": len(controller.world.agents),
            "metrics": asdict(metrics),
        }
    )


@app.get("/api/state")
async def state() -> JSONResponse:
    return JSONResponse(controller.state_payload())


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    controller.running = True
    return JSONResponse({"running": True})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    controller.running = False
    return JSONResponse({"running": False})


@app.post("/api/control/reset")
async def reset_simulation() -> JSONResponse:
    await controller.reset()
    return JSONResponse({"running": controller.running, "tick": controller.tick})


@app.post("/api/control/speed")
async def set_speed(payload: dict) -> JSONResponse:
    speed = float(payload.get("multiplier", 1.0))
    controller.speed_multiplier = max(0.1, min(5.0, speed))
    return JSONResponse({"multiplier": controller.speed_multiplier})


@app.get("/api/config")
async def get_config() -> JSONResponse:
    return JSONResponse(controller.config.to_dict())


@app.patch("/api/config")
async def patch_config(payload: dict) -> JSONResponse:
    try:
        was_reset = await controller.update_config(payload)
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail={"field": exc.field, "message": str(exc)}) from exc
    return JSONResponse({"reset": was_reset, "config": controller.config.to_dict()})


@app.post("/api/predator")
async def set_predator(payload: dict) -> JSONResponse:
    try:
        x = float(payload["x"])
        y = float(payload["y"])
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=422, detail="predator needs numeric x and y") from exc
    await controller.set_predator(x, y)
    return JSONResponse({"predator": {"x": x, "y": y}})


@app.delete("/api/predator")
async def clear_predator() -> JSONResponse:
    await controller.set_predator(None, None)
    return JSONResponse({"predator": None})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.clients.add(websocket)
    controller._client_last_sent[websocket] = -1
    await controller._send_pending_snapshots(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            try:
                payload = json.loads(message)
            except json.JSONDecodeError:
                continue
            if not isinstance(payload, dict):
                continue
            kind = payload.get("type")
            if kind == "ack":
                tick = payload.get("tick")
                if isinstance(tick, int):
                    await controller.acknowledge(tick)
            elif kind == "predator":
                x = payload.get("x")
                y = payload.get("y")
                if isinstance(x, (int, float)) and isinstance(y, (int, float)):
                    await controller.set_predator(x, y)
                else:
                    await controller.set_predator(None, None)
    except WebSocketDisconnect:
        controller.clients.discard(websocket)
        controller._client_last_sent.pop(websocket, None)


__all__ = ["app", "controller"]
