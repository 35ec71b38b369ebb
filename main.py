"""
First-Person Penalty Kick Visualizer (3-Tier Architecture)
Layer 3: Ursina rendering / input handling.
Layer 2: controller.py (PenaltyController)
Layer 1: physics.py (PhysicsEngine)

Drag upward from the right side of the screen to shoot.
Press 1-5 for shot presets, R to restart, P for the params editor.
"""

import logging
import math
import os
import random
import tempfile
import wave
from pathlib import Path

import numpy as np
from ursina import (
    Ursina, Entity, Text, Texture, InputField, Audio, camera, color, window,
    held_keys, mouse, destroy,
    time as ursina_time,
)
from PIL import Image, ImageDraw

from controller import DEFAULT_INFO_MSG, EDITABLE_PARAMS, PenaltyController
from physics import PenaltyConfig
from shot_presets import SCENARIOS

logger = logging.getLogger(__name__)

# ── Layer 2: controller instance ──────────────────────────────────────────────
ctrl = PenaltyController()

W = ctrl.field.width
H = ctrl.field.height


# ──────────────────────────────────────────
# Field <-> UI coordinates
# ──────────────────────────────────────────
# camera.ui spans y in [-0.5, 0.5]; one field pixel is 1/H ui units.

def to_ui(fx: float, fy: float):
    return (fx - W / 2) / H, 0.5 - fy / H


def to_field(ux: float, uy: float):
    return ux * H + W / 2, (0.5 - uy) * H


def px(length: float) -> float:
    return length / H


# ──────────────────────────────────────────
# Texture generation (PIL)
# ──────────────────────────────────────────

_tmp_dir = tempfile.mkdtemp(prefix="penalty_kick_")


def _make_ball_texture(size=256, seed=5):
    """White ball with dark patches so spin and size changes read on screen."""
    img = Image.new("RGB", (size, size), (245, 245, 245))
    draw = ImageDraw.Draw(img)
    rng = random.Random(seed)
    r = size // 9
    draw.regular_polygon((size // 2, size // 2, r), 5, fill=(25, 25, 25))
    for i in range(5):
        a = 2 * math.pi * i / 5 + rng.uniform(-0.1, 0.1)
        cx = size // 2 + int(math.cos(a) * size * 0.33)
        cy = size // 2 + int(math.sin(a) * size * 0.33)
        draw.regular_polygon((cx, cy, int(r * 0.8)), 5, fill=(25, 25, 25))
    return img


def _make_pitch_texture(size=256, bands=10):
    """Alternating mowing bands."""
    img = Image.new("RGB", (size, size), (25, 135, 84))
    draw = ImageDraw.Draw(img)
    band_h = size // bands
    for i in range(0, bands, 2):
        draw.rectangle([0, i * band_h, size, (i + 1) * band_h], fill=(30, 145, 90))
    return img


def _make_net_texture(size=256, cells=12):
    img = Image.new("RGB", (size, size), (60, 70, 80))
    draw = ImageDraw.Draw(img)
    step = size // cells
    for i in range(0, size + 1, step):
        draw.line([(i, 0), (i, size)], fill=(235, 235, 235), width=2)
        draw.line([(0, i), (size, i)], fill=(235, 235, 235), width=2)
    return img


_tex_cache = {}
_TEXTURE_MAKERS = {
    "ball":  _make_ball_texture,
    "pitch": _make_pitch_texture,
    "net":   _make_net_texture,
}


def _get_texture(name):
    """Return or create the named texture (saved to disk, then loaded)."""
    if name in _tex_cache:
        return _tex_cache[name]
    path = os.path.join(_tmp_dir, f"tex_{name}.png")
    _TEXTURE_MAKERS[name]().save(path)
    tex = Texture(path)
    _tex_cache[name] = tex
    return tex


# ──────────────────────────────────────────
# Synthesized Sound Effects (numpy + wave)
# ──────────────────────────────────────────

SAMPLE_RATE = 44100


def _synth_wav(filename, samples):
    """Write mono 16-bit 44100Hz WAV and return Path object."""
    path = os.path.join(_tmp_dir, filename)
    data = np.clip(samples, -1.0, 1.0)
    data_int = (data * 32767).astype(np.int16)
    with wave.open(path, "w") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(SAMPLE_RATE)
        wf.writeframes(data_int.tobytes())
    return Path(path)


def _synth_kick():
    dur = 0.12
    t = np.linspace(0, dur, int(SAMPLE_RATE * dur), endpoint=False)
    env = np.exp(-t * 45)
    # falling pitch thump
    sig = env * np.sin(2 * np.pi * (180 - 600 * t) * t)
    return _synth_wav("kick.wav", sig * 0.9)


def _synth_whistle():
    dur = 0.6
    t = np.linspace(0, dur, int(SAMPLE_RATE * dur), endpoint=False)
    env = np.minimum(1.0, t * 30) * np.exp(-t * 2.5)
    trill = 1 + 0.03 * np.sin(2 * np.pi * 28 * t)
    sig = env * np.sin(2 * np.pi * 2600 * trill * t)
    return _synth_wav("whistle.wav", sig * 0.5)


def _synth_dive():
    dur = 0.25
    t = np.linspace(0, dur, int(SAMPLE_RATE * dur), endpoint=False)
    rng = np.random.RandomState(7)
    noise = rng.randn(len(t))
    kernel = np.ones(60) / 60
    noise = np.convolve(noise, kernel, mode="same")
    noise = noise / (np.max(np.abs(noise)) + 1e-9)
    return _synth_wav("dive.wav", noise * np.exp(-t * 14) * 0.6)


kick_path = _synth_kick()
whistle_path = _synth_whistle()
dive_path = _synth_dive()

snd_kick = None
snd_whistle = None
snd_dive = None
_sounds_loaded = False


def _load_sounds():
    global snd_kick, snd_whistle, snd_dive, _sounds_loaded
    if _sounds_loaded:
        return
    snd_kick = Audio(kick_path, autoplay=False)
    snd_whistle = Audio(whistle_path, autoplay=False)
    snd_dive = Audio(dive_path, autoplay=False)
    _sounds_loaded = True


# ──────────────────────────────────────────
# Ursina App
# ──────────────────────────────────────────

app = Ursina(borderless=False, title="Penalty Kick", size=(1280, 720))
window.color = color.rgb32(167, 219, 255)

# Render layers in camera.ui: larger z is further back
Z_BACK, Z_GOAL, Z_SHADOW, Z_KEEPER, Z_BALL, Z_GESTURE = 0.9, 0.7, 0.6, 0.5, 0.4, 0.3

_, _horizon_uy = to_ui(0, ctrl.field.horizon_y)

# ── Sky + pitch ───────────────────────────────────────────────────────────────
sky = Entity(
    parent=camera.ui, model="quad", color=color.rgb32(116, 192, 255),
    scale=(px(W), px(ctrl.field.horizon_y)),
    position=to_ui(W / 2, ctrl.field.horizon_y / 2), z=Z_BACK,
)

# Clouds drift left across the sky band and wrap back in on the right
Z_CLOUD = 0.8
_cloud_rng = random.Random(11)
clouds = []
for _ in range(max(3, int(W // 300))):
    cw = _cloud_rng.uniform(70, 130)
    cloud = Entity(parent=camera.ui, model="circle", color=color.rgba32(255, 255, 255, 215),
                   scale=(px(cw), px(cw * 0.32)), z=Z_CLOUD)
    cloud.field_x = _cloud_rng.uniform(0, W)
    cloud.field_y = _cloud_rng.uniform(16, ctrl.field.horizon_y * 0.5)
    cloud.width_px = cw
    cloud.speed = _cloud_rng.uniform(10, 40)
    clouds.append(cloud)


def _drift_clouds(dt):
    for cloud in clouds:
        cloud.field_x -= cloud.speed * dt
        if cloud.field_x + cloud.width_px / 2 < 0:
            cloud.field_x = W + _cloud_rng.uniform(0, 100)
        cloud.position = to_ui(cloud.field_x, cloud.field_y)
pitch = Entity(
    parent=camera.ui, model="quad", texture=_get_texture("pitch"),
    scale=(px(W), px(H - ctrl.field.horizon_y)),
    position=to_ui(W / 2, (H + ctrl.field.horizon_y) / 2), z=Z_BACK,
)

# Shoot zone boundary: gestures must start right of this line
zone_line = Entity(
    parent=camera.ui, model="quad", color=color.rgba32(255, 255, 255, 40),
    scale=(px(2), px(H - ctrl.field.horizon_y)), z=Z_GOAL,
)

# ── Goal ──────────────────────────────────────────────────────────────────────
POST = 6
_goal = ctrl.goal
_goal_top = ctrl.field.horizon_y
net = Entity(
    parent=camera.ui, model="quad", texture=_get_texture("net"),
    color=color.rgba32(255, 255, 255, 150),
    scale=(px(_goal.width), px(_goal.height)),
    position=to_ui(_goal.center_x, _goal_top + _goal.height / 2), z=Z_GOAL + 0.01,
)
goal_frame = [
    Entity(parent=camera.ui, model="quad", color=color.white,
           scale=(px(_goal.width + POST), px(POST)),
           position=to_ui(_goal.center_x, _goal_top), z=Z_GOAL),
    Entity(parent=camera.ui, model="quad", color=color.white,
           scale=(px(POST), px(_goal.height)),
           position=to_ui(_goal.left, _goal_top + _goal.height / 2), z=Z_GOAL),
    Entity(parent=camera.ui, model="quad", color=color.white,
           scale=(px(POST), px(_goal.height)),
           position=to_ui(_goal.right, _goal_top + _goal.height / 2), z=Z_GOAL),
]

# ── Goalkeeper ────────────────────────────────────────────────────────────────
KEEPER_SKIN = color.rgb32(241, 194, 125)
keeper_root = Entity(parent=camera.ui, z=Z_KEEPER)
keeper_body = Entity(parent=keeper_root, model="circle", color=color.rgb32(43, 138, 62),
                     scale=(px(36), px(56)), position=(0, px(40)))
keeper_head = Entity(parent=keeper_root, model="circle", color=KEEPER_SKIN,
                     scale=(px(20), px(20)), position=(0, px(70)))
keeper_arms = [
    Entity(parent=keeper_root, model="quad", color=KEEPER_SKIN,
           scale=(px(40), px(6)), origin=(-0.5, 0)),
    Entity(parent=keeper_root, model="quad", color=KEEPER_SKIN,
           scale=(px(40), px(6)), origin=(-0.5, 0)),
]

# ── Ball + shadow ─────────────────────────────────────────────────────────────
ball_shadow = Entity(parent=camera.ui, model="circle", color=color.rgba32(0, 0, 0, 72),
                     z=Z_SHADOW)
ball_entity = Entity(parent=camera.ui, model="circle", texture=_get_texture("ball"),
                     color=color.white, z=Z_BALL)

# ── Gesture line (pointer drag) ───────────────────────────────────────────────
gesture_line = Entity(parent=camera.ui, model="quad", color=color.rgba32(255, 255, 255, 170),
                      origin=(-0.5, 0), scale=(0, px(4)), z=Z_GESTURE, enabled=False)
drag_start = None          # ui coords of an accepted pointer-down

# ── UI ────────────────────────────────────────────────────────────────────────
info_text = Text(text=DEFAULT_INFO_MSG, position=(-0.86, 0.47), scale=1.0, color=color.white)
status_text = Text(text="", position=(-0.86, 0.43), scale=0.9, color=color.light_gray)
score_text = Text(text="", position=(-0.86, 0.38), scale=1.4, color=color.white)
result_bg = Entity(parent=camera.ui, model="quad", color=color.rgba32(0, 0, 0, 150),
                   scale=(0.5, 0.07), position=(0, 0.36), z=0.1, enabled=False)
result_text = Text(text="", origin=(0, 0), position=(0, 0.36), scale=1.6, color=color.white)

_COLOR_MAP = {
    "orange": color.orange,
    "green":  color.lime,
    "gray":   color.light_gray,
    "yellow": color.yellow,
    "white":  color.white,
}


# ──────────────────────────────────────────
# Params Editor
# ──────────────────────────────────────────

class PenaltyParamsEditor:
    """Right-side panel listing the tunable gameplay params for live editing."""

    PARAMS = EDITABLE_PARAMS
    DEFAULTS = PenaltyConfig().as_dict()

    PANEL_X = 0.70
    PANEL_W = 0.30
    ROW_H   = 0.042
    ROW_Y0  = 0.36

    def __init__(self):
        self.selected = 0
        self.visible  = False
        self._ents     = []
        self._val_txts = []
        self._row_bgs  = []
        self._build()
        self.toggle_visible(False)

    def _build(self):
        n = len(self.PARAMS)
        panel_h  = n * self.ROW_H + 0.10
        panel_cy = self.ROW_Y0 - (n - 1) * self.ROW_H / 2 + 0.03
        self._add(Entity(parent=camera.ui, model="quad",
                         color=color.rgba(0, 0, 0, 0.65),
                         scale=(self.PANEL_W, panel_h),
                         position=(self.PANEL_X, panel_cy), z=0.05))
        self._add(Text(text="--- Gameplay Params ---", parent=camera.ui, scale=0.72,
                       position=(self.PANEL_X - 0.13, self.ROW_Y0 + 0.058),
                       color=color.cyan))
        self._add(Text(text="Click row  ]=up  [=down  Shift=fine",
                       parent=camera.ui, scale=0.56,
                       position=(self.PANEL_X - 0.13, self.ROW_Y0 + 0.030),
                       color=color.gray))
        for i, (attr, label, mn, mx, step) in enumerate(self.PARAMS):
            y = self.ROW_Y0 - i * self.ROW_H
            row_bg = Entity(parent=camera.ui, model="quad",
                            color=color.rgba(1, 1, 0, 0.22) if i == 0 else color.rgba(1, 1, 1, 0.04),
                            scale=(self.PANEL_W - 0.01, self.ROW_H - 0.006),
                            position=(self.PANEL_X, y), z=0.04)
            self._add(row_bg)
            self._row_bgs.append(row_bg)
            self._add(Text(text=label, parent=camera.ui, scale=0.66,
                           position=(self.PANEL_X - 0.13, y - 0.008),
                           color=color.white))
            vtxt = Text(text=self._fmt(getattr(ctrl.config, attr)), parent=camera.ui,
                        scale=0.66, position=(self.PANEL_X + 0.05, y - 0.008),
                        color=color.yellow)
            self._add(vtxt)
            self._val_txts.append(vtxt)
        bot_y = self.ROW_Y0 - n * self.ROW_H - 0.005
        self._add(Text(text="[Shift+P] Reset all to defaults", parent=camera.ui, scale=0.56,
                       position=(self.PANEL_X - 0.13, bot_y), color=color.gray))

    def _add(self, entity):
        self._ents.append(entity)
        return entity

    @staticmethod
    def _fmt(val):
        if val == 0.0:
            return "0"
        return f"{val:.4g}"

    def refresh_row(self, i):
        attr = self.PARAMS[i][0]
        val  = getattr(ctrl.config, attr)
        self._val_txts[i].text  = self._fmt(val)
        dflt = self.DEFAULTS[attr]
        self._val_txts[i].color = color.yellow if abs(val - dflt) < 1e-9 else color.orange

    def refresh(self, names=None):
        for i, row in enumerate(self.PARAMS):
            if names is None or row[0] in names:
                self.refresh_row(i)

    def _update_selection(self):
        for i, bg in enumerate(self._row_bgs):
            bg.color = (color.rgba(1, 1, 0, 0.22) if i == self.selected
                        else color.rgba(1, 1, 1, 0.04))

    def try_click(self, mx, my):
        if not self.visible:
            return False
        for i in range(len(self.PARAMS)):
            row_y = self.ROW_Y0 - i * self.ROW_H
            if (abs(mx - self.PANEL_X) <= self.PANEL_W / 2 and
                    abs(my - row_y) <= self.ROW_H / 2):
                self.selected = i
                self._update_selection()
                return True
        return False

    def adjust(self, direction, fine=False):
        attr, _, mn, mx, step = self.PARAMS[self.selected]
        s   = step / 10.0 if fine else step
        cur = getattr(ctrl.config, attr)
        try:
            ctrl.config.set_param(attr, max(mn, min(mx, cur + direction * s)))
        except ValueError as exc:
            status_text.text = str(exc)
        self.refresh_row(self.selected)

    def reset_all(self):
        ctrl.reset_config()
        self.refresh()

    def toggle_visible(self, visible=None):
        self.visible = (not self.visible) if visible is None else visible
        for e in self._ents:
            e.enabled = self.visible


params_editor = None


def _ensure_params_editor():
    global params_editor
    if params_editor is None:
        params_editor = PenaltyParamsEditor()
    return params_editor


# ──────────────────────────────────────────
# Advanced Command Panel (Shift+A)
# ──────────────────────────────────────────

_adv_entities: list = []
_adv_input = None


def _adv_open():
    global _adv_input
    if _adv_input is not None:
        return
    _adv_entities.append(Entity(parent=camera.ui, model="quad",
                                color=color.rgba(0, 0, 0, 0.8),
                                scale=(1.2, 0.26), position=(0, -0.33), z=0.05))
    _adv_entities.append(Text(
        text='JSON command  (Enter=run  Esc=close)   e.g. {"cmd":"set","params":{"keeper_speed":250}}',
        parent=camera.ui, scale=0.7, position=(-0.58, -0.22), color=color.cyan))
    _adv_input = InputField(default_value=ctrl.get_state_json(), character_limit=200,
                            position=(0, -0.33), scale=(1.1, 0.05))
    _adv_input.text_field.active = True
    _adv_entities.append(_adv_input)


def _adv_close():
    global _adv_input
    for e in _adv_entities:
        destroy(e)
    _adv_entities.clear()
    _adv_input = None


# ──────────────────────────────────────────
# Controller event dispatcher (L2 -> L3)
# ──────────────────────────────────────────

def _handle_controller_event(ev: dict):
    t = ev["type"]
    if t == "kick":
        if snd_kick:
            snd_kick.play()
    elif t == "show_result":
        result_text.color = _COLOR_MAP.get(ev.get("color_name", "white"), color.white)
        if ev["event"] in ("goal", "win") and snd_whistle:
            snd_whistle.play()
    elif t == "refresh_params":
        _ensure_params_editor().refresh(ev.get("params"))


def _play_physics_sounds(events):
    for ev in events:
        if ev["type"] == "keeper_dive" and snd_dive:
            snd_dive.play()


# ──────────────────────────────────────────
# Rendering (snapshot -> entities)
# ──────────────────────────────────────────

def _render(snap):
    b, k = snap.ball, snap.keeper

    ball_entity.position = to_ui(b.x, b.y)
    ball_entity.scale = (px(2 * b.size), px(2 * b.size))
    ball_entity.rotation_z = (b.x + b.depth) * 0.8

    ball_shadow.position = to_ui(b.shadow_x, b.shadow_y)
    ball_shadow.scale = (px(2.8 * b.shadow_size), px(1.1 * b.shadow_size))

    keeper_root.position = to_ui(k.x, k.y)
    diving = k.state == "diving"
    lean = 1 if b.x >= k.x else -1
    keeper_root.rotation_z = 55 * lean if diving else 0
    for side, arm in zip((-1, 1), keeper_arms):
        arm.position = (side * px(26), px(50 if diving else 40))
        # arms up and out while diving, down at the sides otherwise
        arm.rotation_z = (-30 if side > 0 else 210) if diving else (60 if side > 0 else 120)

    score_text.text = f"Goals: {snap.score} / {snap.score_to_win}"
    result_text.text = snap.message
    result_bg.enabled = bool(snap.message)


def _update_gesture_line():
    if drag_start is None or mouse.position is None:
        gesture_line.enabled = False
        return
    sx, sy = drag_start
    dx = mouse.position[0] - sx
    dy = mouse.position[1] - sy
    gesture_line.enabled = True
    gesture_line.position = (sx, sy)
    gesture_line.scale_x = math.hypot(dx, dy)
    gesture_line.rotation_z = -math.degrees(math.atan2(dy, dx))


# ──────────────────────────────────────────
# Input handler
# ──────────────────────────────────────────

def input(key):
    global drag_start

    # ── Advanced panel: captures ALL keys ─────────────────────────────────────
    if _adv_input is not None:
        if key == "escape":
            _adv_close()
            status_text.text = "Advanced panel closed."
        elif key == "enter":
            txt = _adv_input.text.replace('\n', '').strip()
            logger.debug("[ADV] enter pressed: %r", txt[:80])
            ctrl.execute_command(txt)
        return

    # ── Shift+A: open advanced command panel ──────────────────────────────────
    if key == "a" and held_keys["shift"] and ctrl.mode != "in_flight":
        _adv_open()
        return

    # ── Params editor ─────────────────────────────────────────────────────────
    ppe = _ensure_params_editor()
    if key == "p":
        if held_keys["shift"]:
            ppe.reset_all()
        else:
            ppe.toggle_visible()
        return
    if ppe.visible:
        if key == "]":
            ppe.adjust(+1, fine=bool(held_keys["shift"]))
            return
        if key == "[":
            ppe.adjust(-1, fine=bool(held_keys["shift"]))
            return

    # ── Scenarios / restart ───────────────────────────────────────────────────
    if key in SCENARIOS:
        fn, label = SCENARIOS[key]
        ctrl.load_scenario(fn, label)
        return
    if key == "r":
        ctrl.restart()
        return

    # ── Mouse: shot gesture ───────────────────────────────────────────────────
    if key == "left mouse down" and mouse.position is not None:
        mx, my = mouse.position[0], mouse.position[1]
        if ppe.try_click(mx, my):
            return
        if ctrl.begin_gesture(*to_field(mx, my)):
            drag_start = (mx, my)
    elif key == "left mouse up":
        if drag_start is None:
            return
        drag_start = None
        gesture_line.enabled = False
        if mouse.position is not None:
            ctrl.end_gesture(*to_field(mouse.position[0], mouse.position[1]))


# ──────────────────────────────────────────
# Update loop
# ──────────────────────────────────────────

def update():
    _load_sounds()

    # ── Sync status/info text from controller ─────────────────────────────────
    if info_text.text != ctrl.info_msg:
        info_text.text = ctrl.info_msg
    if ctrl.status_msg and status_text.text != ctrl.status_msg:
        status_text.text = ctrl.status_msg

    # ── Simulation step -> controller ─────────────────────────────────────────
    snap = ctrl.step(ursina_time.dt)

    # ── Process pending events (L2 -> L3 rendering commands) ─────────────────
    for ev in ctrl.pending_events:
        _handle_controller_event(ev)
    ctrl.pending_events.clear()
    _play_physics_sounds(ctrl.physics_events)

    zone_ux, _ = to_ui(ctrl.config.shoot_zone_fraction * W, 0)
    zone_line.position = (zone_ux, (_horizon_uy - 0.5) / 2)

    _drift_clouds(ursina_time.dt)
    _update_gesture_line()
    _render(snap)


# ──────────────────────────────────────────
# Run
# ──────────────────────────────────────────

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        app.run()
    finally:
        ctrl.shutdown()
