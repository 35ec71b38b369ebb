"""
Penalty Kick Web Server — Layer 3 (FastAPI + WebSocket)

Serves the canvas frontend and runs the simulation loop, streaming frame
snapshots to browser clients over WebSocket. Pointer input arrives on the
same event loop as the tick, so gestures are applied between frames.
"""

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from controller import EDITABLE_PARAMS, PenaltyController
from shot_presets import SCENARIOS

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"

# ── Controller ──────────────────────────────────────────────────────────────

ctrl = PenaltyController()


# ── Lifespan (startup/shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    ctrl.restart()
    task = asyncio.create_task(game_loop())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    ctrl.shutdown()


app = FastAPI(lifespan=lifespan)

# ── Client state ────────────────────────────────────────────────────────────

clients: list[WebSocket] = []

# ── Async game loop ─────────────────────────────────────────────────────────

TARGET_FPS = 60
FRAME_DT = 1.0 / TARGET_FPS


async def game_loop():
    """Main simulation loop running at ~60 fps."""
    last_time = time.perf_counter()

    while True:
        now = time.perf_counter()
        dt = now - last_time
        last_time = now

        # The controller clamps dt (tab backgrounding, slow frames)
        snap = ctrl.step(dt)

        if clients:
            frame_msg = _build_frame_message(snap)
            dead: list[WebSocket] = []
            for ws in clients:
                try:
                    await ws.send_text(frame_msg)
                except (WebSocketDisconnect, RuntimeError):
                    dead.append(ws)
            for ws in dead:
                if ws in clients:
                    clients.remove(ws)
        else:
            ctrl.pending_events.clear()

        # Sleep to maintain target FPS
        elapsed = time.perf_counter() - now
        sleep_time = FRAME_DT - elapsed
        await asyncio.sleep(sleep_time if sleep_time > 0 else 0)


def _build_frame_message(snap) -> str:
    """Serialize a snapshot plus drained UI/sound events into a frame message."""
    events = list(ctrl.pending_events)
    ctrl.pending_events.clear()
    sounds = [{"type": ev.get("type", "")} for ev in ctrl.physics_events]

    frame = {
        "type": "frame",
        "snapshot": snap.to_dict(),
        "events": events,
        "sounds": sounds,
        "status": ctrl.status_msg,
        "info": ctrl.info_msg,
    }
    return json.dumps(frame, separators=(',', ':'))


def _build_init_message() -> str:
    return json.dumps({
        "type": "init",
        "field": {"width": ctrl.field.width, "height": ctrl.field.height,
                  "horizon_y": ctrl.field.horizon_y},
        "goal": asdict(ctrl.goal),
        "config": ctrl.config.as_dict(),
        "frame_dt": FRAME_DT,
    })


# ── Input handlers ──────────────────────────────────────────────────────────

def _handle_key_down(key: str):
    if key == "r":
        ctrl.restart()
    elif key in SCENARIOS:
        fn, label = SCENARIOS[key]
        ctrl.load_scenario(fn, label)


def _handle_pointer(cmd: str, msg: dict):
    x = float(msg.get("x", 0.0))
    y = float(msg.get("y", 0.0))
    if cmd == "pointer_down":
        ctrl.begin_gesture(x, y)
    else:
        ctrl.end_gesture(x, y)


# ── Params helpers ──────────────────────────────────────────────────────────

def _get_params_data() -> list:
    """Return all tunable params with current values."""
    result = []
    for attr, label, mn, mx, step in EDITABLE_PARAMS:
        result.append({
            "attr": attr, "label": label,
            "value": round(getattr(ctrl.config, attr), 6),
            "min": mn, "max": mx, "step": step,
        })
    return result


def _adjust_param(idx: int, direction: int, fine: bool):
    """Step one param; returns the new value or None if rejected."""
    if not 0 <= idx < len(EDITABLE_PARAMS):
        return None
    attr, label, mn, mx, step = EDITABLE_PARAMS[idx]
    s = step / 10.0 if fine else step
    cur = getattr(ctrl.config, attr)
    new_val = max(mn, min(mx, cur + direction * s))
    try:
        ctrl.config.set_param(attr, new_val)
    except ValueError as exc:
        logger.warning("[PARAMS] %s rejected: %s", attr, exc)
        return None
    return getattr(ctrl.config, attr)


# ── WebSocket endpoint ──────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    clients.append(ws)
    await ws.send_text(_build_init_message())

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if not isinstance(msg, dict):
                continue

            cmd = msg.get("cmd", "")
            try:
                if cmd in ("pointer_down", "pointer_up"):
                    _handle_pointer(cmd, msg)
                elif cmd == "key_down":
                    _handle_key_down(str(msg.get("key", "")))
                elif cmd == "execute":
                    ctrl.execute_command(msg.get("text", ""))
                elif cmd == "get_state":
                    await ws.send_text(json.dumps({
                        "type": "state_json",
                        "data": ctrl.get_state_json(),
                    }))
                elif cmd == "get_params":
                    await ws.send_text(json.dumps({
                        "type": "params",
                        "data": _get_params_data(),
                    }))
                elif cmd == "adjust_param":
                    idx = int(msg.get("index", 0))
                    new_val = _adjust_param(idx, int(msg.get("direction", 0)),
                                            bool(msg.get("fine", False)))
                    if new_val is not None:
                        await ws.send_text(json.dumps({
                            "type": "param_update",
                            "index": idx,
                            "value": round(new_val, 6),
                        }))
                elif cmd == "reset_params":
                    ctrl.reset_config()
                    await ws.send_text(json.dumps({
                        "type": "params",
                        "data": _get_params_data(),
                    }))
            except (TypeError, ValueError) as exc:
                logger.warning("[WS] bad %s message: %s", cmd, exc)
    except WebSocketDisconnect:
        pass
    finally:
        if ws in clients:
            clients.remove(ws)


# ── Static files + root route ───────────────────────────────────────────────

app.mount("/static", StaticFiles(directory=STATIC_DIR, check_dir=False), name="static")


@app.get("/")
async def root():
    return FileResponse(STATIC_DIR / "index.html")


# ── Run with uvicorn ────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=False)
