from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import AsyncIterator, Dict, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
import uvicorn

from ..config import AppConfig
from ..sim.core.world import Simulation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SimulationController:
    def __init__(self, config: AppConfig):
        self.config = config
        self.simulation = Simulation(config.simulation)
        self.broadcast_interval = max(1, config.broadcast_interval)
        self.running = False
        self.speed_multiplier = 1.0
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque()
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._loop_task: asyncio.Task | None = None

    @property
    def tick(self) -> int:
        return self.simulation.tick_count

    async def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._loop())
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def shutdown(self) -> None:
        self.running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

    async def reset(self) -> None:
        async with self._lock:
            self.simulation.reset()
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        await self._broadcast_snapshot()

    async def step(self) -> None:
        async with self._lock:
            metrics = self.simulation.tick()
        if metrics.generation_changed and metrics.spawn_failed:
            logger.warning("Generation %d failed to spawn; simulation is stalled", metrics.generation)
        if self.tick % self.broadcast_interval == 0:
            await self._broadcast_snapshot()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.tick_interval_seconds / self.speed_multiplier)
            if not self.running:
                continue
            await self.step()

    async def acknowledge(self, tick: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].tick <= tick:
                self._snapshot_queue.popleft()

    def status(self) -> dict:
        sim = self.simulation
        return {
            "running": self.running,
            "tick": sim.tick_count,
            "generation": sim.generation,
            "best_nest_count": sim.best_nest_count,
            "nest_blocks": sim.count_nest_blocks(),
            "living_agents": sim.living_agent_count(),
            "spawn_failed": sim.last_spawn_failed,
        }

    def _serialize_snapshot(self) -> QueuedSnapshot:
        snapshot = self.simulation.snapshot()
        payload = {
            "type": "snapshot",
            "tick": snapshot.tick,
            "payload": {
                "tick": snapshot.tick,
                "metrics": asdict(snapshot.metrics),
                "agents": snapshot.agents,
                "world": asdict(snapshot.world),
                "metadata": asdict(snapshot.metadata),
                "fields": asdict(snapshot.fields),
            },
        }
        return QueuedSnapshot(tick=snapshot.tick, payload=json.dumps(payload))

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
            self.clients.discard(client)
            self._client_last_sent.pop(client, None)


def create_app(controller: SimulationController, autostart: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if autostart:
            await controller.start()
        yield
        await controller.shutdown()

    app = FastAPI(title="Formicary Colony Simulation", lifespan=lifespan)

    @app.get("/api/status")
    async def status() -> JSONResponse:
        return JSONResponse(controller.status())

    @app.get("/api/generations")
    async def generations() -> JSONResponse:
        return JSONResponse([asdict(summary) for summary in controller.simulation.fitness.history])

    @app.post("/api/control/start")
    async def start_simulation() -> JSONResponse:
        await controller.start()
        return JSONResponse({"running": True})

    @app.post("/api/control/stop")
    async def stop_simulation() -> JSONResponse:
        await controller.stop()
        return JSONResponse({"running": False})

    @app.post("/api/control/reset")
    async def reset_simulation() -> JSONResponse:
        await controller.reset()
        return JSONResponse({"running": controller.running, "tick": controller.tick})

    @app.post("/api/control/speed")
    async def set_speed(payload: dict) -> JSONResponse:
        speed = float(payload.get("multiplier", 1.0))
        controller.speed_multiplier = max(0.1, min(10.0, speed))
        return JSONResponse({"multiplier": controller.speed_multiplier})

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
                if payload.get("type") == "ack":
                    tick = payload.get("tick")
                    if isinstance(tick, int):
                        await controller.acknowledge(tick)
        except WebSocketDisconnect:
            controller.clients.discard(websocket)
            controller._client_last_sent.pop(websocket, None)

    return app


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(create_app(SimulationController(AppConfig())), host="127.0.0.1", port=8000)


__all__ = ["SimulationController", "create_app", "main"]
