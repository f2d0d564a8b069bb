"""FastAPI service that runs the simulation and streams frames over WebSocket."""
from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import asdict, replace
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from starlette.websockets import WebSocketState

from .config import DisplaySettings, SimulationConfig, load_config
from .errors import ConfigurationError
from .presets import get_preset, list_presets
from .simulation import SimulationEngine

logger = logging.getLogger(__name__)

# Path of a JSON settings file to start the service with.
CONFIG_ENV_VAR = "PARTICLESIM_CONFIG"

# ============================================================================
# Pydantic Models
# ============================================================================

class ConfigUpdate(BaseModel):
    """Update configuration parameters. Omitted fields keep their value."""
    particle_count: Optional[int] = Field(default=None, ge=1, le=5000)
    environment_width: Optional[float] = Field(default=None, gt=0.0)
    environment_height: Optional[float] = Field(default=None, gt=0.0)
    colors: Optional[List[str]] = None
    drag: Optional[float] = Field(default=None, ge=0.0)
    mass: Optional[float] = Field(default=None, gt=0.0)
    pressure_inflection_point: Optional[float] = Field(default=None, gt=0.0)
    sight: Optional[float] = Field(default=None, gt=0.0)
    frames_per_second: Optional[int] = Field(default=None, ge=1, le=120)
    seed: Optional[int] = None


class MatrixUpdate(BaseModel):
    """Replace the attraction matrix."""
    matrix: List[List[float]]


# ============================================================================
# Global state
# ============================================================================

def _initial_settings():
    path = os.environ.get(CONFIG_ENV_VAR)
    if path:
        return load_config(path)
    return SimulationConfig(), DisplaySettings()


_config, _display = _initial_settings()
_engine = SimulationEngine(_config)
_engine.setup()
_state_lock = asyncio.Lock()
_websocket_clients: set = set()
_simulation_task = None


# ============================================================================
# FastAPI App with Lifespan
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the frame loop for the lifetime of the app."""
    global _simulation_task, _state_lock
    # The lock must belong to the loop serving this app.
    _state_lock = asyncio.Lock()
    logger.info("Starting background simulation task")
    _simulation_task = asyncio.create_task(_simulation_loop())

    yield

    logger.info("Cancelling background simulation task")
    if _simulation_task:
        _simulation_task.cancel()
        try:
            await _simulation_task
        except asyncio.CancelledError:
            pass
        _simulation_task = None

app = FastAPI(title="Particle Life Simulator", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Background Simulation Task
# ============================================================================

def _snapshot() -> Dict[str, Any]:
    """Frame payload. Call with the state lock held."""
    state = _engine.get_state()
    state["matrix"] = _engine.matrix.tolist()
    state["display"] = asdict(_display)
    return state


async def _simulation_loop():
    """Step the simulation once per frame and broadcast the result."""
    while True:
        async with _state_lock:
            _engine.step()
            state = _snapshot()

        # Broadcast outside the lock
        message = {"type": "state", "payload": state}
        dead_clients = set()
        for client in list(_websocket_clients):
            try:
                if client.client_state == WebSocketState.CONNECTED:
                    await client.send_json(message)
                else:
                    dead_clients.add(client)
            except Exception as exc:
                logger.warning("Dropping client after send failure: %s: %s", type(exc).__name__, exc)
                dead_clients.add(client)

        if dead_clients:
            logger.info("Removing %d dead clients", len(dead_clients))
        _websocket_clients.difference_update(dead_clients)

        if _engine.frame % 300 == 0:
            logger.debug("Frame %d, clients=%d", _engine.frame, len(_websocket_clients))

        await asyncio.sleep(_display.frame_interval)


# ============================================================================
# Helper Functions
# ============================================================================

def _updated_settings(update: ConfigUpdate):
    """Create new settings with updates applied."""
    changes = update.model_dump(exclude_none=True)
    fps = changes.pop("frames_per_second", None)
    settings_fields = {"colors", "drag", "mass", "pressure_inflection_point", "sight"}
    settings_changes = {k: changes.pop(k) for k in list(changes) if k in settings_fields}

    particle_settings = replace(_config.particle_settings, **settings_changes)
    config = replace(_config, particle_settings=particle_settings, **changes)
    display = replace(_display, frames_per_second=fps) if fps is not None else _display
    return config, display


def _restart(config: SimulationConfig, display: DisplaySettings) -> None:
    """Validate and swap in a new engine. Call with the state lock held."""
    global _config, _display, _engine
    config.validate()
    display.validate()
    engine = SimulationEngine(config)
    engine.setup()
    _config, _display, _engine = config, display, engine


def _config_payload() -> Dict[str, Any]:
    return {
        "config": _config.to_dict(),
        "display": asdict(_display),
        "matrix": _engine.matrix.tolist(),
    }


# ============================================================================
# REST Endpoints
# ============================================================================

@app.get("/health")
async def health() -> Dict[str, str]:
    """Health check."""
    return {"status": "ok"}


@app.get("/config")
async def get_config() -> Dict[str, Any]:
    """Get current configuration and matrix."""
    async with _state_lock:
        return _config_payload()


@app.post("/config")
async def update_config(config_update: ConfigUpdate) -> Dict[str, Any]:
    """Update configuration and restart simulation."""
    async with _state_lock:
        try:
            _restart(*_updated_settings(config_update))
        except ConfigurationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _config_payload()


@app.post("/matrix")
async def update_matrix(matrix_update: MatrixUpdate) -> Dict[str, Any]:
    """Replace the attraction matrix."""
    async with _state_lock:
        try:
            _engine.set_matrix(matrix_update.matrix)
        except ConfigurationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"matrix": _engine.matrix.tolist()}


@app.post("/reset")
async def reset_simulation() -> Dict[str, str]:
    """Seed a fresh matrix and particle set."""
    async with _state_lock:
        _engine.setup()
        return {"status": "reset"}


@app.get("/state")
async def get_state() -> Dict[str, Any]:
    """Current frame."""
    async with _state_lock:
        return _snapshot()


@app.get("/presets")
async def get_presets() -> List[Dict[str, Any]]:
    """List available presets."""
    return [
        {
            "name": p.name,
            "description": p.description,
            "particle_settings": asdict(p.particle_settings),
        }
        for p in list_presets()
    ]


@app.post("/presets/{name}")
async def apply_preset(name: str) -> Dict[str, Any]:
    """Restart the simulation with a preset's particle settings."""
    async with _state_lock:
        try:
            preset = get_preset(name)
        except ConfigurationError as e:
            raise HTTPException(status_code=404, detail=str(e))
        _restart(preset.apply(_config), _display)
        payload = _config_payload()
        payload["preset"] = preset.name
        return payload


# ============================================================================
# WebSocket
# ============================================================================

async def _handle_message(message: Dict[str, Any]) -> None:
    """Handle client commands. Call with the state lock held."""
    if not isinstance(message, dict):
        raise ValueError("Message must be a JSON object")
    msg_type = message.get("type")

    if msg_type == "update_matrix":
        matrix = message.get("matrix")
        if matrix is None:
            raise ValueError("Message missing 'matrix'")
        _engine.set_matrix(matrix)

    elif msg_type == "reset":
        _engine.setup()

    elif msg_type == "use_preset":
        name = message.get("name")
        if name is None:
            raise ValueError("Message missing 'name'")
        _restart(get_preset(name).apply(_config), _display)

    else:
        raise ValueError(f"Unknown message type '{msg_type}'")


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Clients receive every frame and may send commands."""
    await websocket.accept()
    async with _state_lock:
        state = _snapshot()
    await websocket.send_json({"type": "state", "payload": state})
    _websocket_clients.add(websocket)
    logger.info("WebSocket client connected, total clients: %d", len(_websocket_clients))

    try:
        while True:
            message = await websocket.receive_json()
            try:
                async with _state_lock:
                    await _handle_message(message)
                    state = _snapshot()
            except ValueError as exc:
                await websocket.send_json({"type": "error", "detail": str(exc)})
                continue
            await websocket.send_json({"type": "state", "payload": state})
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
    finally:
        _websocket_clients.discard(websocket)
        logger.info("Client removed, remaining clients: %d", len(_websocket_clients))
