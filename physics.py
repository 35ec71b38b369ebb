"""
First-Person Penalty Kick — Simulation Core
Layer 1: entity state, gesture interpretation, ball integration, goalkeeper AI

Coordinates are screen-space CSS pixels: x grows to the right, y grows
downward, the goal sits on the horizon near the top of the field and the
ball rests at the shooter's spot near the bottom edge.
"""

import enum
import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────
# Layout constants (pixels)
# ──────────────────────────────────────────────
FIELD_WIDTH: float = 960.0
FIELD_HEIGHT: float = 540.0
HORIZON_FRACTION: float = 0.22   # horizon y as a fraction of field height
GOAL_LINE_OFFSET: float = 10.0   # goal line sits just below the horizon
GOAL_WIDTH: float = 320.0
GOAL_HEIGHT: float = 140.0
KEEPER_Y_OFFSET: float = 140.0   # keeper baseline below the horizon
BALL_RADIUS: float = 26.0
SHOOTER_Y_OFFSET: float = 120.0  # resting ball height above the bottom edge

# Perspective (render metadata only, never feeds back into the simulation)
PERSPECTIVE_DEPTH_FRACTION: float = 0.6
PERSPECTIVE_SHRINK: float = 0.6
PERSPECTIVE_MAX_T: float = 0.98
MIN_BALL_DRAW_SIZE: float = 6.0
SHADOW_BASE_OFFSET: float = 48.0
SHADOW_TRAVEL_MARGIN: float = 60.0
SHADOW_SIZE_RATIO: float = 1 / 1.6

# ── Runtime-editable behavior constants ───────────────────────────────────────
# Defaults for PenaltyConfig. Each controller owns its own PenaltyConfig, so
# frontends tune a running game through ctrl.config.set_param(...).
SHOOT_ZONE_FRACTION: float = 0.35   # gestures must start right of this x fraction
POWER_DIVISOR: float = 250.0        # px of upward drag per unit of power
MIN_POWER: float = 0.08
MAX_POWER: float = 1.6
AIM_GAIN: float = 3.5               # vx per px of aim offset
LAUNCH_SPEED: float = 400.0         # screen-space vy per unit of power
DEPTH_SPEED: float = 480.0          # depth velocity per unit of power
DRAG_BASE: float = 0.995            # per-frame decay at the reference rate
DRAG_REFERENCE_HZ: float = 60.0
GOAL_DEPTH_FRACTION: float = 0.55   # resolve once depth > fraction * field height
SAVE_RANGE: float = 70.0
DIVE_TIME_WINDOW: float = 0.6
DIVE_DISTANCE_WINDOW: float = 90.0
DIVE_DURATION: float = 0.45
KEEPER_SPEED: float = 300.0
KEEPER_TRIGGER_VY: float = -10.0    # forward vy needed before the keeper predicts
KEEPER_TRACK_DRIFT: float = 0.3     # centring speed fraction, weak shot in flight
KEEPER_IDLE_DRIFT: float = 0.2      # centring speed fraction, no shot
KEEPER_BOB_AMPLITUDE: float = 6.0
KEEPER_BOB_PERIOD: float = 4.4
RESET_DELAY: float = 0.8
WIN_DISPLAY_DELAY: float = 2.0
SCORE_TO_WIN: int = 5
MAX_DT: float = 0.05


# ──────────────────────────────────────────────
# Math helpers
# ──────────────────────────────────────────────

def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def approach(current: float, target: float, max_step: float) -> float:
    """Move current toward target by at most max_step."""
    return current + clamp(target - current, -max_step, max_step)


def drag_factor(dt: float, base: float = DRAG_BASE,
                reference_hz: float = DRAG_REFERENCE_HZ) -> float:
    """Frame-rate independent decay: base per frame at reference_hz."""
    return base ** (dt * reference_hz)


def coast_distance(velocity: float, base: float = DRAG_BASE,
                   reference_hz: float = DRAG_REFERENCE_HZ) -> float:
    """
    Total distance a body moving at `velocity` covers before drag stops it.

    Under continuous decay v(t) = v0 * base**(t * reference_hz) this is
    v0 / k with k = -reference_hz * ln(base). Without drag (base == 1) any
    positive velocity coasts forever.
    """
    if velocity <= 0:
        return 0.0
    if base >= 1.0:
        return math.inf
    return velocity / (-reference_hz * math.log(base))


# ──────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────

@dataclass
class PenaltyConfig:
    """Tunable gameplay parameters. Defaults mirror the module constants."""
    shoot_zone_fraction: float = SHOOT_ZONE_FRACTION
    power_divisor: float = POWER_DIVISOR
    min_power: float = MIN_POWER
    max_power: float = MAX_POWER
    aim_gain: float = AIM_GAIN
    launch_speed: float = LAUNCH_SPEED
    depth_speed: float = DEPTH_SPEED
    drag_base: float = DRAG_BASE
    goal_depth_fraction: float = GOAL_DEPTH_FRACTION
    save_range: float = SAVE_RANGE
    dive_time_window: float = DIVE_TIME_WINDOW
    dive_distance_window: float = DIVE_DISTANCE_WINDOW
    dive_duration: float = DIVE_DURATION
    keeper_speed: float = KEEPER_SPEED
    keeper_trigger_vy: float = KEEPER_TRIGGER_VY
    keeper_track_drift: float = KEEPER_TRACK_DRIFT
    keeper_idle_drift: float = KEEPER_IDLE_DRIFT
    keeper_bob_amplitude: float = KEEPER_BOB_AMPLITUDE
    keeper_bob_period: float = KEEPER_BOB_PERIOD
    reset_delay: float = RESET_DELAY
    win_display_delay: float = WIN_DISPLAY_DELAY
    score_to_win: int = SCORE_TO_WIN
    max_dt: float = MAX_DT

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.power_divisor <= 0:
            raise ValueError("power_divisor must be positive")
        if self.min_power <= 0 or self.min_power > self.max_power:
            raise ValueError(
                f"power range [{self.min_power}, {self.max_power}] is invalid")
        if not 0.0 < self.drag_base <= 1.0:
            raise ValueError("drag_base must be in (0, 1]")
        if self.dive_duration <= 0 or self.keeper_bob_period <= 0:
            raise ValueError("dive_duration and keeper_bob_period must be positive")
        if self.score_to_win < 1:
            raise ValueError("score_to_win must be at least 1")
        if self.max_dt <= 0:
            raise ValueError("max_dt must be positive")
        if self.reset_delay < 0 or self.win_display_delay < 0:
            raise ValueError("delays cannot be negative")

    def set_param(self, name: str, value) -> None:
        """Update one parameter in place, rolling back if it breaks validation."""
        if name not in TUNABLE_PARAMS:
            raise ValueError(f"unknown parameter '{name}'")
        cast = int if name == "score_to_win" else float
        try:
            new_value = cast(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{name}: not a number: {value!r}") from exc
        old_value = getattr(self, name)
        setattr(self, name, new_value)
        try:
            self.validate()
        except ValueError:
            setattr(self, name, old_value)
            raise

    def updated(self, **changes) -> "PenaltyConfig":
        """Return a validated copy with the given parameters changed."""
        unknown = set(changes) - set(TUNABLE_PARAMS)
        if unknown:
            raise ValueError(f"unknown parameter(s): {sorted(unknown)}")
        return replace(self, **changes)

    def as_dict(self) -> dict:
        return {name: getattr(self, name) for name in TUNABLE_PARAMS}


TUNABLE_PARAMS = tuple(f.name for f in fields(PenaltyConfig))


# ──────────────────────────────────────────────
# Entity state
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Field:
    """Play area layout, derived from the viewport size."""
    width: float = FIELD_WIDTH
    height: float = FIELD_HEIGHT

    def __post_init__(self):
        if not (self.width > 0 and self.height > 0):
            raise ValueError(f"field size must be positive, got {self.width}x{self.height}")

    @property
    def center_x(self) -> float:
        return self.width / 2

    @property
    def horizon_y(self) -> float:
        return float(math.floor(self.height * HORIZON_FRACTION))

    @property
    def goal_line_y(self) -> float:
        return self.horizon_y + GOAL_LINE_OFFSET

    @property
    def keeper_y(self) -> float:
        return self.horizon_y + KEEPER_Y_OFFSET

    @property
    def shooter_x(self) -> float:
        return self.width / 2

    @property
    def shooter_y(self) -> float:
        return self.height - SHOOTER_Y_OFFSET

    def goal_depth(self, config: PenaltyConfig) -> float:
        return config.goal_depth_fraction * self.height

    def contains(self, x: float, y: float, margin: float = 0.0) -> bool:
        return (-margin <= x <= self.width + margin and
                -margin <= y <= self.height + margin)


@dataclass(frozen=True)
class Goal:
    """Target rectangle on the horizon. Immutable after setup."""
    center_x: float
    width: float = GOAL_WIDTH
    height: float = GOAL_HEIGHT

    @classmethod
    def for_field(cls, pitch: Field) -> "Goal":
        return cls(center_x=pitch.center_x)

    @property
    def left(self) -> float:
        return self.center_x - self.width / 2

    @property
    def right(self) -> float:
        return self.center_x + self.width / 2

    def covers(self, x: float) -> bool:
        return abs(x - self.center_x) <= self.width / 2


@dataclass
class Ball:
    """Ball in screen space plus its simulated travel depth into the field."""
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    depth: float = 0.0
    depth_vel: float = 0.0
    radius: float = BALL_RADIUS
    shooting: bool = False

    @classmethod
    def resting(cls, pitch: Field) -> "Ball":
        return cls(x=pitch.shooter_x, y=pitch.shooter_y)

    def place_at_rest(self, pitch: Field) -> None:
        """Return to the shooter's spot with no velocity. Safe to repeat."""
        self.x = pitch.shooter_x
        self.y = pitch.shooter_y
        self.vx = 0.0
        self.vy = 0.0
        self.depth = 0.0
        self.depth_vel = 0.0
        self.shooting = False

    def freeze(self) -> None:
        """Stop in place after a resolved shot (position kept for display)."""
        self.vx = 0.0
        self.vy = 0.0
        self.depth_vel = 0.0
        self.shooting = False


class KeeperState(enum.Enum):
    IDLE = "idle"
    DIVING = "diving"


@dataclass
class Goalkeeper:
    x: float = 0.0
    y: float = 0.0
    speed: float = KEEPER_SPEED
    state: KeeperState = KeeperState.IDLE
    dive_timer: float = 0.0
    dive_duration: float = DIVE_DURATION
    committed: bool = False   # dive decision already taken for the current shot

    @classmethod
    def for_field(cls, pitch: Field, config: Optional[PenaltyConfig] = None) -> "Goalkeeper":
        config = config or PenaltyConfig()
        return cls(x=pitch.center_x, y=pitch.keeper_y,
                   speed=config.keeper_speed, dive_duration=config.dive_duration)

    @property
    def is_diving(self) -> bool:
        return self.state == KeeperState.DIVING

    def start_dive(self) -> None:
        self.state = KeeperState.DIVING
        self.dive_timer = self.dive_duration
        self.committed = True

    def reset(self) -> None:
        """Back to idle between rounds; position is kept and drifts to centre."""
        self.state = KeeperState.IDLE
        self.dive_timer = 0.0
        self.committed = False


# ──────────────────────────────────────────────
# Gesture interpretation
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class GesturePoint:
    x: float
    y: float
    t: float = 0.0

    @classmethod
    def coerce(cls, obj) -> "GesturePoint":
        """Accept a GesturePoint, a {x, y[, t]} mapping or an (x, y[, t]) sequence."""
        if isinstance(obj, GesturePoint):
            point = obj
        elif isinstance(obj, Mapping):
            point = cls(float(obj["x"]), float(obj["y"]), float(obj.get("t", 0.0)))
        elif isinstance(obj, Sequence) and not isinstance(obj, str) and len(obj) in (2, 3):
            point = cls(*(float(v) for v in obj))
        else:
            raise TypeError(f"cannot read a gesture point from {obj!r}")
        if not (math.isfinite(point.x) and math.isfinite(point.y)):
            raise ValueError(f"non-finite gesture point {point}")
        return point


@dataclass(frozen=True)
class Shot:
    """Launch parameters produced by a released gesture."""
    aim_x: float
    power: float
    vx: float
    vy: float
    depth_vel: float


def in_shoot_zone(x: float, field_width: float,
                  config: Optional[PenaltyConfig] = None) -> bool:
    config = config or PenaltyConfig()
    return x > config.shoot_zone_fraction * field_width


def interpret_gesture(start, end, ball_x: float, field_width: float,
                      config: Optional[PenaltyConfig] = None) -> Optional[Shot]:
    """
    Convert a drag gesture into launch velocities.

    Args:
        start, end: Gesture endpoints (GesturePoint, mapping or sequence).
        ball_x: Current ball x; the shot drives the ball toward the aim point.
        field_width: Width of the play area, for the shoot zone and aim centre.

    Returns:
        A Shot, or None for malformed gestures and gestures that did not start
        in the shoot zone. Flat or downward drags still shoot at minimum power.
    """
    config = config or PenaltyConfig()
    try:
        p0 = GesturePoint.coerce(start)
        p1 = GesturePoint.coerce(end)
    except (KeyError, TypeError, ValueError) as exc:
        logger.debug("[SHOT] malformed gesture ignored: %s", exc)
        return None

    if not in_shoot_zone(p0.x, field_width, config):
        logger.debug("[SHOT] gesture at x=%.1f outside shoot zone ignored", p0.x)
        return None

    dx = p1.x - p0.x
    dy = p1.y - p0.y   # negative for an upward swipe
    aim_x = field_width / 2 + dx
    power = clamp(-dy / config.power_divisor, config.min_power, config.max_power)
    return Shot(
        aim_x=aim_x,
        power=power,
        vx=(aim_x - ball_x) * config.aim_gain,
        vy=-config.launch_speed * power,
        depth_vel=config.depth_speed * power,
    )


# ──────────────────────────────────────────────
# Perspective projection (render metadata)
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Perspective:
    t: float
    ball_size: float
    shadow_x: float
    shadow_y: float
    shadow_size: float


def project(ball: Ball, pitch: Field) -> Perspective:
    """Scale the ball and its ground shadow by how far it has travelled."""
    span = pitch.height * PERSPECTIVE_DEPTH_FRACTION
    t_ball = clamp(ball.depth / span, 0.0, PERSPECTIVE_MAX_T)
    t_shadow = clamp(ball.depth / span, 0.0, 1.0)
    travel = pitch.height - pitch.horizon_y - SHADOW_TRAVEL_MARGIN
    return Perspective(
        t=t_shadow,
        ball_size=max(MIN_BALL_DRAW_SIZE, ball.radius * (1 - PERSPECTIVE_SHRINK * t_ball)),
        shadow_x=ball.x,
        shadow_y=pitch.height - SHADOW_BASE_OFFSET - t_shadow * travel,
        shadow_size=ball.radius * SHADOW_SIZE_RATIO * (1 - PERSPECTIVE_SHRINK * t_shadow),
    )


# ──────────────────────────────────────────────
# Engine
# ──────────────────────────────────────────────

class PhysicsEngine:
    """Ball integrator and goalkeeper AI. Stateless apart from the tick's events."""

    def __init__(self, config: Optional[PenaltyConfig] = None):
        self.config = config or PenaltyConfig()
        self.events: list = []

    # ──────────────────────────────────────────
    # Kick
    # ──────────────────────────────────────────
    @staticmethod
    def apply_shot(ball: Ball, shot: Shot) -> None:
        """The only resting -> in-flight transition."""
        ball.vx = shot.vx
        ball.vy = shot.vy
        ball.depth = 0.0
        ball.depth_vel = shot.depth_vel
        ball.shooting = True

    # ──────────────────────────────────────────
    # Ball
    # ──────────────────────────────────────────
    def integrate(self, ball: Ball, dt: float) -> None:
        """Advance an in-flight ball by dt seconds with exponential drag."""
        if not ball.shooting:
            return
        ball.x += ball.vx * dt
        ball.y += ball.vy * dt
        ball.depth += ball.depth_vel * dt

        decay = drag_factor(dt, self.config.drag_base)
        ball.vx *= decay
        ball.vy *= decay
        ball.depth_vel *= decay

    # ──────────────────────────────────────────
    # Goalkeeper
    # ──────────────────────────────────────────
    def predict_crossing(self, ball: Ball, pitch: Field) -> Optional[tuple]:
        """
        Predict (time, x) at which the ball reaches the goal line.

        Returns None unless the ball is shooting with a strong forward vy.
        Time is clamped at zero, so a ball already past the line predicts its
        current x rather than extrapolating backwards along vx.
        """
        if not ball.shooting or not ball.vy < self.config.keeper_trigger_vy:
            return None
        t = max(0.0, (ball.y - pitch.goal_line_y) / -ball.vy)
        pred_x = ball.x + ball.vx * t
        if not (math.isfinite(t) and math.isfinite(pred_x)):
            return None
        return t, pred_x

    def update_keeper(self, keeper: Goalkeeper, ball: Ball, goal: Goal,
                      pitch: Field, dt: float, clock: float) -> None:
        """Track the predicted crossing and commit to at most one dive per shot."""
        cfg = self.config
        max_move = keeper.speed * dt

        if ball.shooting:
            prediction = self.predict_crossing(ball, pitch)
            if prediction is None:
                keeper.x = approach(keeper.x, goal.center_x, max_move * cfg.keeper_track_drift)
                return
            t, pred_x = prediction
            keeper.x = approach(keeper.x, pred_x, max_move)
            if (t < cfg.dive_time_window
                    and abs(pred_x - keeper.x) < cfg.dive_distance_window
                    and keeper.state == KeeperState.IDLE
                    and not keeper.committed):
                keeper.start_dive()
                self.events.append({"type": "keeper_dive", "t": t, "pred_x": pred_x})
                logger.debug("[KEEPER] dive: t=%.3f pred_x=%.1f keeper_x=%.1f",
                             t, pred_x, keeper.x)
        else:
            phase = 2 * math.pi * clock / cfg.keeper_bob_period
            keeper.x += math.sin(phase) * cfg.keeper_bob_amplitude * dt
            keeper.x = approach(keeper.x, goal.center_x, max_move * cfg.keeper_idle_drift)

    @staticmethod
    def advance_dive(keeper: Goalkeeper, dt: float) -> None:
        """Count the dive down; the keeper recovers to idle when it expires."""
        if keeper.state != KeeperState.DIVING:
            return
        keeper.dive_timer -= dt
        if keeper.dive_timer <= 0:
            keeper.state = KeeperState.IDLE
            keeper.dive_timer = 0.0

    # ──────────────────────────────────────────
    # Main Update
    # ──────────────────────────────────────────
    def update(self, ball: Ball, keeper: Goalkeeper, goal: Goal,
               pitch: Field, dt: float, clock: float) -> None:
        """Advance ball and keeper by dt seconds. Dive countdown is separate."""
        self.events.clear()
        self.integrate(ball, dt)
        self.update_keeper(keeper, ball, goal, pitch, dt, clock)
