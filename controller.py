"""
PenaltyController — Layer 2 (Game Logic)

Owns the ball, goalkeeper, goal and the game session (score, win condition,
shot resolution, deferred resets). Communicates with Layer 3 (server.py /
main.py) through:
  - step(dt) -> FrameSnapshot : immutable render state for the frame
  - pending_events            : UI commands (kick, show_result, update_score, ...)
  - physics_events            : engine events for sounds (keeper_dive)

Layer 3 calls:
  ctrl.begin_gesture(x, y) / ctrl.end_gesture(x, y)  — pointer down / up
  ctrl.step(dt)                                       — once per frame
  ctrl.shutdown()                                     — on teardown
"""

import json
import logging
import math
from dataclasses import asdict, dataclass, field, replace
from typing import Optional

import numpy as np

from physics import (
    Ball, Field, Goal, Goalkeeper, GesturePoint, KeeperState, PenaltyConfig,
    PhysicsEngine, Shot, TUNABLE_PARAMS, clamp, coast_distance, in_shoot_zone,
    interpret_gesture, project,
    FIELD_WIDTH, FIELD_HEIGHT,
)

logger = logging.getLogger(__name__)


# ── Default info-bar message ───────────────────────────────────────────────────
DEFAULT_INFO_MSG = (
    "Drag up on the right side to shoot  [1-5] Scenario  [R] Restart  [P] Params"
)

# Rows for the frontends' live params editors: (attr, label, min, max, step)
EDITABLE_PARAMS = [
    ("shoot_zone_fraction",  "Shoot Zone",     0.0,    0.9,   0.01),
    ("power_divisor",        "Power Divisor",  50.0,   600.0, 10.0),
    ("min_power",            "Min Power",      0.01,   0.5,   0.01),
    ("max_power",            "Max Power",      0.5,    3.0,   0.05),
    ("aim_gain",             "Aim Gain",       0.5,    8.0,   0.1),
    ("launch_speed",         "Launch Speed",   100.0,  900.0, 10.0),
    ("depth_speed",          "Depth Speed",    100.0,  900.0, 10.0),
    ("drag_base",            "Drag",           0.95,   1.0,   0.001),
    ("save_range",           "Save Range",     10.0,   200.0, 5.0),
    ("dive_time_window",     "Dive Window",    0.1,    1.5,   0.05),
    ("dive_distance_window", "Dive Reach",     10.0,   250.0, 5.0),
    ("dive_duration",        "Dive Duration",  0.1,    1.5,   0.05),
    ("keeper_speed",         "Keeper Speed",   0.0,    800.0, 10.0),
    ("reset_delay",          "Reset Delay",    0.0,    3.0,   0.1),
    ("win_display_delay",    "Win Delay",      0.0,    5.0,   0.1),
]


# ──────────────────────────────────────────────────────────────────────────────
# Deferred mutations
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(order=True)
class ScheduledEvent:
    """A mutation due at simulation time `due`. `tag` guards stale events."""
    due: float
    seq: int
    action: str = field(compare=False)
    tag: int = field(default=0, compare=False)


# ──────────────────────────────────────────────────────────────────────────────
# Snapshots (read-only view for Layer 3)
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BallView:
    x: float
    y: float
    depth: float
    radius: float
    shooting: bool
    size: float
    shadow_x: float
    shadow_y: float
    shadow_size: float


@dataclass(frozen=True)
class KeeperView:
    x: float
    y: float
    state: str
    dive_timer: float


@dataclass(frozen=True)
class FrameSnapshot:
    clock: float
    mode: str
    ball: BallView
    keeper: KeeperView
    goal: Goal
    field: Field
    score: int
    score_to_win: int
    message: str
    match_over: bool
    event: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["field"]["horizon_y"] = self.field.horizon_y
        return data


class PenaltyController:
    """Layer 2: game session + shot resolution + simulation orchestration."""

    # ── Class-level constants ─────────────────────────────────────────────────
    MESSAGE_TIMES = {"save": 0.9, "goal": 1.2, "win": 1.4, "miss": 0.9}
    RESULT_MESSAGES = {
        "save": "Saved by the keeper!",
        "goal": "GOOOAL!",
        "win":  "You win!",
        "miss": "So close...",
    }
    RESULT_COLORS = {"save": "orange", "goal": "green", "win": "yellow", "miss": "gray"}

    # ── Constructor ───────────────────────────────────────────────────────────

    def __init__(self, field_width: float = FIELD_WIDTH,
                 field_height: float = FIELD_HEIGHT,
                 config: Optional[PenaltyConfig] = None):
        self.config = config or PenaltyConfig()
        self.field = Field(field_width, field_height)
        self.goal = Goal.for_field(self.field)
        self.engine = PhysicsEngine(self.config)

        # Entities
        self.ball = Ball.resting(self.field)
        self.keeper = Goalkeeper.for_field(self.field, self.config)

        # Session
        self.score = 0
        self.mode = "ready"          # "ready"|"in_flight"|"resolved"
        self.match_over = False      # win message showing, shots blocked
        self.clock = 0.0
        self.shot_id = 0
        self.closed = False
        self.last_event: Optional[str] = None
        self.last_reason = ""

        # Input
        self._gesture_start: Optional[GesturePoint] = None

        # Scheduler
        self._scheduled: list[ScheduledEvent] = []
        self._seq = 0
        self._message_seq = 0

        # Status / info messages (L3 reads these to update text entities)
        self.message = ""
        self.status_msg = "Drag upward on the right side to shoot."
        self.info_msg = DEFAULT_INFO_MSG

        # Event queues
        self.pending_events: list[dict] = []   # L3 UI commands
        self.physics_events: list[dict] = []   # engine events for sounds

    # ──────────────────────────────────────────────────────────────────────────
    # Main loop
    # ──────────────────────────────────────────────────────────────────────────

    def step(self, dt_frame: float) -> FrameSnapshot:
        """Advance one frame. Called every frame by L3."""
        if self.closed:
            return self.snapshot()

        dt = dt_frame if math.isfinite(dt_frame) else 0.0
        dt = clamp(dt, 0.0, self.config.max_dt)
        self.clock += dt
        self.last_event = None
        self.physics_events.clear()

        self._run_due_events()
        self._sync_keeper_params()

        self.engine.update(self.ball, self.keeper, self.goal, self.field, dt, self.clock)
        self.physics_events.extend(self.engine.events)

        if self.ball.shooting:
            self._check_shot()

        self.engine.advance_dive(self.keeper, dt)
        return self.snapshot()

    def _sync_keeper_params(self) -> None:
        self.keeper.speed = self.config.keeper_speed
        self.keeper.dive_duration = self.config.dive_duration
        if self.keeper.dive_timer > self.keeper.dive_duration:
            self.keeper.dive_timer = self.keeper.dive_duration

    # ──────────────────────────────────────────────────────────────────────────
    # Input
    # ──────────────────────────────────────────────────────────────────────────

    def accepts_shots(self) -> bool:
        return not self.closed and self.mode == "ready" and not self.match_over

    def begin_gesture(self, x: float, y: float, t: Optional[float] = None) -> bool:
        """Pointer down. Only starts inside the shoot zone are remembered."""
        try:
            start = GesturePoint.coerce((x, y, self.clock if t is None else t))
        except (TypeError, ValueError):
            self._gesture_start = None
            return False
        if not in_shoot_zone(start.x, self.field.width, self.config):
            self._gesture_start = None
            return False
        self._gesture_start = start
        return True

    def end_gesture(self, x: float, y: float, t: Optional[float] = None) -> Optional[Shot]:
        """Pointer up. Fires a shot when the session is ready for one."""
        start, self._gesture_start = self._gesture_start, None
        if start is None:
            return None
        if not self.accepts_shots():
            logger.debug("[SHOT] release ignored in mode=%s match_over=%s",
                         self.mode, self.match_over)
            return None
        end = (x, y, self.clock if t is None else t)
        shot = interpret_gesture(start, end, self.ball.x, self.field.width, self.config)
        if shot is None:
            return None
        self._fire(shot)
        return shot

    def fire_gesture(self, start, end) -> Optional[Shot]:
        """Convenience: begin + end a gesture in one call."""
        try:
            p0 = GesturePoint.coerce(start)
            p1 = GesturePoint.coerce(end)
        except (KeyError, TypeError, ValueError):
            return None
        self.begin_gesture(p0.x, p0.y, p0.t)
        return self.end_gesture(p1.x, p1.y, p1.t)

    def _fire(self, shot: Shot) -> None:
        self.shot_id += 1
        self.keeper.committed = False
        self.engine.apply_shot(self.ball, shot)
        self.mode = "in_flight"
        self.status_msg = f"Shot! power={shot.power:.2f}"
        self.pending_events.append({"type": "kick", "power": shot.power})
        logger.info("[SHOT] #%d fired: aim_x=%.1f power=%.3f vx=%.1f vy=%.1f",
                    self.shot_id, shot.aim_x, shot.power, shot.vx, shot.vy)

    # ──────────────────────────────────────────────────────────────────────────
    # Shot resolution
    # ──────────────────────────────────────────────────────────────────────────

    def _check_shot(self) -> None:
        ball = self.ball
        goal_depth = self.field.goal_depth(self.config)
        if ball.depth > goal_depth:
            self._resolve_shot(classify_outcome(ball, self.keeper, self.goal, self.config))
        elif not self.field.contains(ball.x, ball.y, margin=ball.radius):
            self._resolve_shot("miss", reason="out_of_bounds", immediate=True)
        elif ball.depth + coast_distance(ball.depth_vel, self.config.drag_base) < goal_depth:
            # drag will stop the ball short of the goal
            self._resolve_shot("miss", reason="stalled", immediate=True)

    def _resolve_shot(self, outcome: str, reason: str = "depth",
                      immediate: bool = False) -> None:
        ball_x = self.ball.x
        self.ball.freeze()
        self.mode = "resolved"

        event = self.on_goal() if outcome == "goal" else outcome
        self.last_event = event
        self.last_reason = reason
        self._show_message(event)
        self.pending_events.append({
            "type": "show_result",
            "event": event,
            "msg": self.RESULT_MESSAGES[event],
            "color_name": self.RESULT_COLORS[event],
        })
        logger.info("[SHOT] #%d %s (%s) ball_x=%.1f keeper_x=%.1f keeper=%s score=%d",
                    self.shot_id, event, reason, ball_x, self.keeper.x,
                    self.keeper.state.value, self.score)

        if immediate:
            self.reset_ball()
        else:
            self.schedule(self.config.reset_delay, "reset_ball", tag=self.shot_id)

    # ──────────────────────────────────────────────────────────────────────────
    # Session
    # ──────────────────────────────────────────────────────────────────────────

    def on_goal(self) -> str:
        self.score += 1
        self.pending_events.append({"type": "update_score", "score": self.score})
        if self.score >= self.config.score_to_win:
            self.score = self.config.score_to_win
            return self.on_win()
        return "goal"

    def on_win(self) -> str:
        self.match_over = True
        self.schedule(self.config.win_display_delay, "reset_score")
        self.status_msg = "Match won! New match starting..."
        logger.info("[SESSION] match won at t=%.2f", self.clock)
        return "win"

    def reset_ball(self) -> None:
        """Resting ball + idle keeper. Idempotent."""
        self.ball.place_at_rest(self.field)
        self.keeper.reset()
        self.mode = "ready"
        if not self.match_over:
            self.status_msg = "Drag upward on the right side to shoot."
        self.pending_events.append({"type": "reset_ball"})

    def reset_score(self) -> None:
        self.score = 0
        self.match_over = False
        self.status_msg = "Drag upward on the right side to shoot."
        self.pending_events.append({"type": "reset_score"})
        self.pending_events.append({"type": "update_score", "score": 0})

    def restart(self) -> None:
        """Fresh session: cancel deferred work, centre keeper, zero score."""
        self.cancel_pending()
        self.closed = False
        self._gesture_start = None
        self.shot_id += 1   # invalidate anything tagged with the old shot
        self.reset_ball()
        self.keeper.x = self.goal.center_x
        self.score = 0
        self.match_over = False
        self.last_event = None
        self.message = ""
        self.status_msg = "Drag upward on the right side to shoot."
        self.info_msg = DEFAULT_INFO_MSG
        self.pending_events.append({"type": "update_score", "score": 0})

    def shutdown(self) -> None:
        """Teardown: cancel pending resets and stop ticking."""
        cancelled = self.cancel_pending()
        self._gesture_start = None
        self.closed = True
        logger.info("[SESSION] shutdown, %d pending event(s) cancelled", cancelled)

    def _show_message(self, event: str) -> None:
        self._message_seq += 1
        self.message = self.RESULT_MESSAGES[event]
        self.schedule(self.MESSAGE_TIMES[event], "clear_message", tag=self._message_seq)

    # ──────────────────────────────────────────────────────────────────────────
    # Scheduler
    # ──────────────────────────────────────────────────────────────────────────

    def schedule(self, delay: float, action: str, tag: int = 0) -> ScheduledEvent:
        self._seq += 1
        ev = ScheduledEvent(due=self.clock + max(0.0, delay), seq=self._seq,
                            action=action, tag=tag)
        self._scheduled.append(ev)
        self._scheduled.sort()
        logger.debug("[SESSION] scheduled %s at t=%.3f", action, ev.due)
        return ev

    def cancel_pending(self, action: Optional[str] = None) -> int:
        """Drop scheduled events (all, or only those for `action`)."""
        keep = [] if action is None else [e for e in self._scheduled if e.action != action]
        cancelled = len(self._scheduled) - len(keep)
        self._scheduled = keep
        return cancelled

    @property
    def scheduled(self) -> list:
        return list(self._scheduled)

    def _run_due_events(self) -> None:
        while self._scheduled and self._scheduled[0].due <= self.clock + 1e-9:
            ev = self._scheduled.pop(0)
            if ev.action == "reset_ball":
                if ev.tag != self.shot_id:
                    logger.debug("[SESSION] stale reset for shot #%d dropped", ev.tag)
                    continue
                self.reset_ball()
            elif ev.action == "reset_score":
                self.reset_score()
            elif ev.action == "clear_message":
                if ev.tag == self._message_seq:
                    self.message = ""

    # ──────────────────────────────────────────────────────────────────────────
    # Snapshot
    # ──────────────────────────────────────────────────────────────────────────

    def snapshot(self) -> FrameSnapshot:
        b, k = self.ball, self.keeper
        view = project(b, self.field)
        return FrameSnapshot(
            clock=self.clock,
            mode=self.mode,
            ball=BallView(
                x=b.x, y=b.y, depth=b.depth, radius=b.radius, shooting=b.shooting,
                size=view.ball_size, shadow_x=view.shadow_x,
                shadow_y=view.shadow_y, shadow_size=view.shadow_size,
            ),
            keeper=KeeperView(x=k.x, y=k.y, state=k.state.value, dive_timer=k.dive_timer),
            goal=self.goal,
            field=self.field,
            score=self.score,
            score_to_win=self.config.score_to_win,
            message=self.message,
            match_over=self.match_over,
            event=self.last_event,
        )

    # ──────────────────────────────────────────────────────────────────────────
    # Scenarios
    # ──────────────────────────────────────────────────────────────────────────

    def load_scenario(self, scenario_fn, label: str) -> None:
        """Restart and set up a shot-preset scenario (keys 1-5)."""
        if self.mode == "in_flight":
            return
        scenario_fn(ctrl=self, run=False)
        self.info_msg = f"Scenario {label}"

    # ──────────────────────────────────────────────────────────────────────────
    # Advanced Command Panel
    # ──────────────────────────────────────────────────────────────────────────

    def get_state_json(self) -> str:
        """Return current entity state as a compact single-line set-command JSON."""
        return json.dumps({
            "cmd": "set",
            "ball": {"x": round(self.ball.x, 2), "y": round(self.ball.y, 2)},
            "keeper": {"x": round(self.keeper.x, 2)},
            "score": self.score,
        }, separators=(',', ':'))

    def execute_command(self, text: str) -> None:
        """Parse a JSON command string and dispatch to handlers."""
        if not text:
            logger.debug("[ADV] execute_command: empty text")
            return
        if not isinstance(text, str):
            self.status_msg = "Command must be a JSON string."
            return
        text = text.replace('\r', '')
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("[ADV] JSON parse error: %s", exc)
            self.status_msg = f"JSON error: {exc}"
            return
        if not isinstance(data, dict):
            self.status_msg = "Command must be a JSON object."
            return
        cmd = str(data.get("cmd", "")).lower().strip()
        logger.debug("[ADV] cmd=%s", cmd)
        try:
            if cmd == "set":
                self._adv_cmd_set(data)
            elif cmd == "shot":
                self._adv_cmd_shot(data)
            elif cmd == "save":
                self._adv_cmd_save(data)
            elif cmd == "load":
                self._adv_cmd_load(data)
            else:
                self.status_msg = f"Unknown cmd '{cmd}'. Use set/shot/save/load."
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("[ADV] %s failed: %s", cmd, exc)
            self.status_msg = f"{cmd}: {exc}"

    def _adv_cmd_set(self, data: dict) -> None:
        """set: update tunable params OR place ball/keeper/score."""
        params = data.get("params")
        if params is not None:
            self._adv_cmd_params(params)
            return

        if not any(k in data for k in ("ball", "keeper", "score")):
            self.status_msg = "set: 'ball', 'keeper', 'score' or 'params' field required."
            return
        for key in ("ball", "keeper"):
            if key in data and not isinstance(data[key], dict):
                self.status_msg = f"set: '{key}' must be an object like {{\"x\": 480}}."
                return
        if self.mode == "in_flight":
            self.status_msg = "set: wait for the shot to finish."
            return

        updated = []
        if "ball" in data:
            bd = data["ball"]
            self.cancel_pending("reset_ball")
            self.ball.place_at_rest(self.field)
            self.ball.x = float(bd.get("x", self.ball.x))
            self.ball.y = float(bd.get("y", self.ball.y))
            self.mode = "ready"
            updated.append("ball")
        if "keeper" in data:
            kd = data["keeper"]
            self.keeper.reset()
            self.keeper.x = float(kd.get("x", self.keeper.x))
            updated.append("keeper")
        if "score" in data:
            self.score = int(clamp(int(data["score"]), 0, self.config.score_to_win - 1))
            self.pending_events.append({"type": "update_score", "score": self.score})
            updated.append("score")
        self.status_msg = f"set: {updated} updated."

    def _adv_cmd_params(self, params: dict) -> None:
        """set params: update PenaltyConfig fields by name."""
        if not isinstance(params, dict):
            self.status_msg = "set: 'params' must be an object of name: value pairs."
            return
        updated, skipped = [], []
        for k, v in params.items():
            try:
                self.config.set_param(k, v)
                updated.append(f"{k}={getattr(self.config, k):.4g}")
            except ValueError as exc:
                logger.warning("[ADV] param %s rejected: %s", k, exc)
                skipped.append(k)
        self.pending_events.append({"type": "refresh_params", "params": list(params.keys())})
        msg = f"params: set {updated}"
        if skipped:
            msg += f"  (rejected: {skipped})"
        logger.info("[ADV] %s", msg)
        self.status_msg = msg

    def reset_config(self) -> None:
        """Restore default tunables in place; the engine shares this config."""
        defaults = PenaltyConfig()
        for name in TUNABLE_PARAMS:
            setattr(self.config, name, getattr(defaults, name))
        self.pending_events.append({"type": "refresh_params", "params": list(TUNABLE_PARAMS)})
        logger.info("[ADV] params reset to defaults")

    def _adv_cmd_shot(self, data: dict) -> None:
        """shot: fire a gesture given as start/end points."""
        shot = self.fire_gesture(data["start"], data["end"])
        if shot is None:
            self.status_msg = "shot: gesture rejected."
            return
        self.status_msg = f"shot: aim_x={shot.aim_x:.1f} power={shot.power:.2f}"

    def _adv_cmd_save(self, data: dict) -> None:
        """save: write ball/keeper/score state to a JSON file."""
        file_opt = data.get("file", "")
        if not file_opt:
            self.status_msg = "save: 'file' field required."
            return
        if not isinstance(file_opt, str):
            self.status_msg = "save: 'file' must be a string."
            return
        fname = file_opt if file_opt.endswith(".json") else file_opt + ".json"
        payload = {
            "cmd": "set",
            "ball": {"x": self.ball.x, "y": self.ball.y},
            "keeper": {"x": self.keeper.x},
            "score": self.score,
        }
        try:
            with open(fname, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except OSError as exc:
            self.status_msg = f"Save error: {exc}"
            return
        logger.info("[ADV] save -> %s", fname)
        self.status_msg = f"Saved -> {fname}"

    def _adv_cmd_load(self, data: dict) -> None:
        """load: restore state from a JSON file saved by 'save'."""
        file_opt = data.get("file", "")
        if not file_opt:
            self.status_msg = "load: 'file' field required."
            return
        if not isinstance(file_opt, str):
            self.status_msg = "load: 'file' must be a string."
            return
        fname = file_opt if file_opt.endswith(".json") else file_opt + ".json"
        try:
            with open(fname, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except FileNotFoundError:
            self.status_msg = f"load: not found: {fname}"
            return
        except (OSError, json.JSONDecodeError) as exc:
            self.status_msg = f"Load error: {exc}"
            return
        if not isinstance(loaded, dict):
            self.status_msg = f"load: {fname} does not hold a JSON object."
            return
        logger.info("[ADV] load <- %s", fname)
        self._adv_cmd_set(loaded)

    # ──────────────────────────────────────────────────────────────────────────
    # Headless API
    # ──────────────────────────────────────────────────────────────────────────

    REWARD_GOAL = 1.0
    REWARD_SAVE = -0.5
    REWARD_MISS = -0.2

    def simulate_shot(self, start, end, *, sim_dt: float = 1 / 60,
                      max_t: float = 10.0, state: Optional[dict] = None) -> dict:
        """Headless shot simulation.

        Non-destructive: runs on a scratch controller built from copies of the
        live config, keeper and score. The live session is left untouched.

        Args:
            start, end: Gesture endpoints, as accepted by ``fire_gesture``.
            sim_dt:     Tick length in seconds.
            max_t:      Give up after this much simulated time.
            state:      Optional overrides, e.g. ``{"keeper": {"x": 430},
                        "score": 4}``.

        Returns:
            ``dict`` with ``event`` (goal/save/miss/win, or None on timeout),
            ``reason``, ``sim_time``, ``ticks``, ``dove``, ``ball``,
            ``keeper``, ``obs`` (observation at resolution) and ``reward``.

        Raises:
            ValueError: the gesture is rejected by the interpreter.
        """
        sim = PenaltyController(self.field.width, self.field.height,
                                config=replace(self.config))
        sim.keeper = replace(self.keeper, state=KeeperState.IDLE,
                             dive_timer=0.0, committed=False)
        sim.score = min(self.score, self.config.score_to_win - 1)
        sim.clock = self.clock
        if state:
            if "keeper" in state:
                sim.keeper.x = float(state["keeper"].get("x", sim.keeper.x))
            if "score" in state:
                sim.score = int(clamp(int(state["score"]), 0, self.config.score_to_win - 1))

        shot = sim.fire_gesture(start, end)
        if shot is None:
            raise ValueError(f"simulate_shot: gesture {start} -> {end} was rejected")

        dove = False
        ticks = 0
        sim_t = 0.0
        event = None
        obs = sim.get_obs()
        while sim_t < max_t:
            sim.step(sim_dt)
            ticks += 1
            sim_t += sim_dt
            dove = dove or any(ev["type"] == "keeper_dive" for ev in sim.physics_events)
            if sim.last_event is not None:
                event = sim.last_event
                obs = sim.get_obs()
                break

        if event in ("goal", "win"):
            reward = self.REWARD_GOAL
        elif event == "save":
            reward = self.REWARD_SAVE
        else:
            reward = self.REWARD_MISS

        return {
            "event":    event,
            "reason":   sim.last_reason if event else "timeout",
            "shot":     asdict(shot),
            "sim_time": round(sim_t, 4),
            "ticks":    ticks,
            "dove":     dove,
            "ball":     {"x": round(sim.ball.x, 4), "y": round(sim.ball.y, 4),
                         "depth": round(sim.ball.depth, 4)},
            "keeper":   {"x": round(sim.keeper.x, 4), "state": sim.keeper.state.value},
            "obs":      obs,
            "reward":   reward,
        }

    def get_obs(self) -> np.ndarray:
        """Flat float32 observation:
        [ball.x, ball.y, ball.vx, ball.vy, ball.depth, ball.depth_vel,
        keeper.x, keeper.dive_timer]."""
        b, k = self.ball, self.keeper
        return np.array([b.x, b.y, b.vx, b.vy, b.depth, b.depth_vel,
                         k.x, k.dive_timer], dtype=np.float32)

    def reset(self) -> np.ndarray:
        """Restart the session and return the observation vector."""
        self.restart()
        return self.get_obs()


def classify_outcome(ball: Ball, keeper: Goalkeeper, goal: Goal,
                     config: PenaltyConfig) -> str:
    """Save beats goal beats miss."""
    if abs(ball.x - keeper.x) < config.save_range and keeper.state == KeeperState.DIVING:
        return "save"
    if goal.covers(ball.x):
        return "goal"
    return "miss"
