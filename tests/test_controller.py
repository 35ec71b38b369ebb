"""
Controller Tests — shot resolution, session flow, scheduler and headless API.

Scenario B: a diving keeper within 70 px of the ball saves it.
Scenario C: an undefended ball inside the posts scores.
Scenario D: the fifth goal wins, and the score resets after the display delay.
"""

import sys
import os
import dataclasses
import json
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from controller import FrameSnapshot, PenaltyController, classify_outcome
from physics import Ball, Goal, Goalkeeper, KeeperState, PenaltyConfig

DT = 1 / 60
GOAL_GESTURE = ((700.0, 450.0), (700.0, 200.0))
WEAK_GESTURE = ((700.0, 300.0), (700.0, 340.0))
SLOW_GESTURE = ((700.0, 450.0), (700.0, 400.0))


# ── Helpers ──────────────────────────────────────────────

def arrive_at_goal(ctrl: PenaltyController, ball_x: float = 480.0):
    """Put the ball one tick short of the depth threshold, moving straight in."""
    ctrl.ball.x = ball_x
    ctrl.ball.y = 140.0
    ctrl.ball.vx = 0.0
    ctrl.ball.vy = 0.0
    ctrl.ball.depth = ctrl.field.goal_depth(ctrl.config) - 1.0
    ctrl.ball.depth_vel = 300.0
    ctrl.ball.shooting = True
    ctrl.mode = "in_flight"


def run_until_resolved(ctrl: PenaltyController, max_ticks: int = 600) -> str:
    for _ in range(max_ticks):
        ctrl.step(DT)
        if ctrl.last_event is not None:
            return ctrl.last_event
    raise AssertionError("shot never resolved")


def advance(ctrl: PenaltyController, seconds: float, dt: float = 0.05):
    for _ in range(int(round(seconds / dt)) + 1):
        ctrl.step(dt)


# ── Scenarios B / C / D: resolver ───────────────────────

class TestResolver:

    def test_scenario_b_diving_keeper_saves(self):
        ctrl = PenaltyController()
        arrive_at_goal(ctrl, ball_x=480.0)
        ctrl.keeper.start_dive()
        ctrl.step(DT)
        assert ctrl.last_event == "save"
        assert ctrl.score == 0

    def test_scenario_c_undefended_goal(self):
        ctrl = PenaltyController()
        arrive_at_goal(ctrl, ball_x=400.0)
        ctrl.step(DT)
        assert ctrl.last_event == "goal"
        assert ctrl.score == 1

    def test_idle_keeper_on_the_ball_does_not_save(self):
        ctrl = PenaltyController()
        arrive_at_goal(ctrl, ball_x=480.0)
        ctrl.step(DT)
        assert ctrl.last_event == "goal"

    def test_wide_ball_misses(self):
        ctrl = PenaltyController()
        arrive_at_goal(ctrl, ball_x=700.0)
        ctrl.step(DT)
        assert ctrl.last_event == "miss"
        assert ctrl.score == 0

    def test_scenario_d_win_then_reset(self):
        ctrl = PenaltyController()
        ctrl.score = ctrl.config.score_to_win - 1
        arrive_at_goal(ctrl, ball_x=400.0)
        ctrl.step(DT)
        assert ctrl.last_event == "win"
        assert ctrl.score == ctrl.config.score_to_win
        assert ctrl.match_over
        assert ctrl.fire_gesture(*GOAL_GESTURE) is None, "no shots while the win shows"

        advance(ctrl, ctrl.config.win_display_delay)
        assert ctrl.score == 0
        assert not ctrl.match_over

    def test_save_takes_precedence(self):
        ball = Ball(x=470.0)
        keeper = Goalkeeper(x=480.0, state=KeeperState.DIVING, dive_timer=0.2)
        assert classify_outcome(ball, keeper, Goal(480.0), PenaltyConfig()) == "save"

    def test_resolves_exactly_once(self):
        ctrl = PenaltyController()
        arrive_at_goal(ctrl, ball_x=400.0)
        ctrl.step(DT)
        events = []
        for _ in range(30):
            ctrl.step(DT)
            events.append(ctrl.last_event)
        assert events == [None] * 30
        assert ctrl.score == 1

    def test_ball_resets_after_delay(self):
        ctrl = PenaltyController()
        arrive_at_goal(ctrl, ball_x=400.0)
        ctrl.step(DT)
        assert ctrl.mode == "resolved"
        assert not ctrl.ball.shooting
        advance(ctrl, ctrl.config.reset_delay)
        assert ctrl.mode == "ready"
        assert (ctrl.ball.x, ctrl.ball.y) == (ctrl.field.shooter_x, ctrl.field.shooter_y)
        assert ctrl.keeper.state == KeeperState.IDLE

    def test_result_message_shown_then_cleared(self):
        ctrl = PenaltyController()
        arrive_at_goal(ctrl, ball_x=400.0)
        ctrl.step(DT)
        assert ctrl.message == "GOOOAL!"
        shown = [ev for ev in ctrl.pending_events if ev["type"] == "show_result"]
        assert shown and shown[0]["color_name"] == "green"
        advance(ctrl, PenaltyController.MESSAGE_TIMES["goal"])
        assert ctrl.message == ""


# ── Early terminations ──────────────────────────────────

class TestEarlyMiss:

    def test_out_of_bounds_is_immediate_miss(self):
        ctrl = PenaltyController()
        assert ctrl.fire_gesture((950.0, 500.0), (50.0, 100.0)) is not None
        assert run_until_resolved(ctrl) == "miss"
        assert ctrl.last_reason == "out_of_bounds"
        assert ctrl.mode == "ready"
        assert ctrl.ball.x == ctrl.field.shooter_x
        assert not any(ev.action == "reset_ball" for ev in ctrl.scheduled)

    def test_weak_shot_stalls(self):
        ctrl = PenaltyController()
        ctrl.fire_gesture(*WEAK_GESTURE)
        assert run_until_resolved(ctrl) == "miss"
        assert ctrl.last_reason == "stalled"
        assert ctrl.mode == "ready"
        assert ctrl.clock == pytest.approx(DT), "drag cannot carry it to goal depth"

    def test_slow_shot_that_can_reach_goal_scores(self):
        ctrl = PenaltyController()
        shot = ctrl.fire_gesture(*SLOW_GESTURE)
        assert shot.power == pytest.approx(0.2)
        assert run_until_resolved(ctrl, max_ticks=720) == "goal"
        assert ctrl.clock > 8.0
        assert ctrl.score == 1

    def test_no_stall_without_drag(self):
        ctrl = PenaltyController(config=PenaltyConfig(drag_base=1.0))
        ctrl.fire_gesture(*WEAK_GESTURE)
        assert run_until_resolved(ctrl, max_ticks=720) == "goal"


# ── Input gating ────────────────────────────────────────

class TestInput:

    def test_gesture_outside_zone_ignored(self):
        ctrl = PenaltyController()
        before = dataclasses.asdict(ctrl.ball)
        assert not ctrl.begin_gesture(100.0, 450.0)
        assert ctrl.end_gesture(100.0, 200.0) is None
        assert dataclasses.asdict(ctrl.ball) == before

    def test_release_without_press_ignored(self):
        ctrl = PenaltyController()
        assert ctrl.end_gesture(700.0, 200.0) is None
        assert not ctrl.ball.shooting

    def test_gesture_ignored_in_flight(self):
        ctrl = PenaltyController()
        first = ctrl.fire_gesture(*GOAL_GESTURE)
        assert first is not None and ctrl.mode == "in_flight"
        vx, vy = ctrl.ball.vx, ctrl.ball.vy
        assert ctrl.fire_gesture((700.0, 450.0), (900.0, 100.0)) is None
        assert (ctrl.ball.vx, ctrl.ball.vy) == (vx, vy)

    def test_fire_emits_kick_event(self):
        ctrl = PenaltyController()
        shot = ctrl.fire_gesture(*GOAL_GESTURE)
        kicks = [ev for ev in ctrl.pending_events if ev["type"] == "kick"]
        assert kicks == [{"type": "kick", "power": shot.power}]

    def test_malformed_points_ignored(self):
        ctrl = PenaltyController()
        assert ctrl.fire_gesture(None, (700.0, 200.0)) is None
        assert not ctrl.begin_gesture(float("nan"), 300.0)


# ── Session / scheduler ─────────────────────────────────

class TestSession:

    def test_reset_ball_idempotent(self):
        ctrl = PenaltyController()
        ctrl.fire_gesture(*GOAL_GESTURE)
        ctrl.step(DT)
        ctrl.reset_ball()
        once = dataclasses.asdict(ctrl.ball)
        ctrl.reset_ball()
        assert dataclasses.asdict(ctrl.ball) == once
        assert ctrl.mode == "ready"

    def test_stale_reset_dropped(self):
        ctrl = PenaltyController()
        ctrl.fire_gesture(*SLOW_GESTURE)
        ctrl.schedule(0.05, "reset_ball", tag=ctrl.shot_id - 1)
        for _ in range(12):
            ctrl.step(DT)
        assert ctrl.ball.shooting, "a reset for an older shot must not touch this one"
        assert ctrl.mode == "in_flight"

    def test_restart_cancels_pending(self):
        ctrl = PenaltyController()
        ctrl.score = 2
        arrive_at_goal(ctrl, ball_x=400.0)
        ctrl.step(DT)
        assert ctrl.scheduled
        ctrl.restart()
        assert ctrl.scheduled == []
        assert ctrl.score == 0
        assert ctrl.keeper.x == ctrl.goal.center_x

    def test_shutdown_stops_ticking(self):
        ctrl = PenaltyController()
        arrive_at_goal(ctrl, ball_x=400.0)
        ctrl.step(DT)
        ctrl.shutdown()
        assert ctrl.scheduled == []
        clock = ctrl.clock
        ctrl.step(DT)
        assert ctrl.clock == clock
        assert ctrl.fire_gesture(*GOAL_GESTURE) is None

    @pytest.mark.parametrize("dt, expected", [(1.0, 0.05), (-1.0, 0.0),
                                              (float("nan"), 0.0), (0.01, 0.01)])
    def test_dt_clamped(self, dt, expected):
        ctrl = PenaltyController()
        ctrl.step(dt)
        assert ctrl.clock == pytest.approx(expected)

    def test_keeper_params_follow_config(self):
        ctrl = PenaltyController()
        ctrl.config.set_param("keeper_speed", 123.0)
        ctrl.step(DT)
        assert ctrl.keeper.speed == 123.0


# ── Snapshot ────────────────────────────────────────────

class TestSnapshot:

    def test_snapshot_is_immutable(self):
        snap = PenaltyController().step(DT)
        assert isinstance(snap, FrameSnapshot)
        with pytest.raises(dataclasses.FrozenInstanceError):
            snap.score = 3
        with pytest.raises(dataclasses.FrozenInstanceError):
            snap.ball.x = 0.0

    def test_snapshot_detached_from_live_state(self):
        ctrl = PenaltyController()
        ctrl.fire_gesture(*GOAL_GESTURE)
        snap = ctrl.snapshot()
        for _ in range(10):
            ctrl.step(DT)
        assert snap.ball.depth == 0.0
        assert ctrl.ball.depth > 0.0

    def test_to_dict_is_json_ready(self):
        data = PenaltyController().snapshot().to_dict()
        text = json.dumps(data)
        assert '"horizon_y": 118.0' in text
        assert data["keeper"]["state"] == "idle"
        assert data["ball"]["size"] == pytest.approx(26.0)


# ── Command console ─────────────────────────────────────

class TestCommands:

    def test_set_params(self):
        ctrl = PenaltyController()
        ctrl.execute_command('{"cmd":"set","params":{"keeper_speed":250,"save_range":50}}')
        assert ctrl.config.keeper_speed == 250.0
        assert ctrl.config.save_range == 50.0
        assert ctrl.engine.config is ctrl.config

    def test_bad_param_rejected(self):
        ctrl = PenaltyController()
        ctrl.execute_command('{"cmd":"set","params":{"min_power":5,"gravity":1}}')
        assert ctrl.config.min_power == pytest.approx(0.08)
        assert "rejected" in ctrl.status_msg

    def test_bad_json(self):
        ctrl = PenaltyController()
        ctrl.execute_command("{not json")
        assert ctrl.status_msg.startswith("JSON error")

    def test_unknown_command(self):
        ctrl = PenaltyController()
        ctrl.execute_command('{"cmd":"fly"}')
        assert "Unknown cmd" in ctrl.status_msg

    def test_set_score_clamped(self):
        ctrl = PenaltyController()
        ctrl.execute_command('{"cmd":"set","score":99}')
        assert ctrl.score == ctrl.config.score_to_win - 1

    def test_shot_command(self):
        ctrl = PenaltyController()
        ctrl.execute_command('{"cmd":"shot","start":[700,450],"end":{"x":700,"y":200}}')
        assert ctrl.ball.shooting

    def test_save_and_load(self, tmp_path):
        ctrl = PenaltyController()
        ctrl.keeper.x = 400.0
        ctrl.score = 3
        target = tmp_path / "state"
        ctrl.execute_command(json.dumps({"cmd": "save", "file": str(target)}))
        saved = tmp_path / "state.json"
        assert saved.exists()

        other = PenaltyController()
        other.execute_command(json.dumps({"cmd": "load", "file": str(saved)}))
        assert other.keeper.x == 400.0
        assert other.score == 3

    def test_load_missing_file(self, tmp_path):
        ctrl = PenaltyController()
        ctrl.execute_command(json.dumps({"cmd": "load", "file": str(tmp_path / "nope")}))
        assert "not found" in ctrl.status_msg

    @pytest.mark.parametrize("command, message", [
        ('{"cmd":"set","ball":5}', "'ball' must be an object"),
        ('{"cmd":"set","keeper":[1]}', "'keeper' must be an object"),
        ('{"cmd":"set","params":[1]}', "'params' must be an object"),
        ('{"cmd":"save","file":5}', "'file' must be a string"),
        ('{"cmd":"load","file":["a"]}', "'file' must be a string"),
    ])
    def test_wrongly_typed_fields_reported(self, command, message):
        ctrl = PenaltyController()
        before = dataclasses.asdict(ctrl.ball)
        ctrl.execute_command(command)
        assert message in ctrl.status_msg
        assert dataclasses.asdict(ctrl.ball) == before

    def test_non_string_command(self):
        ctrl = PenaltyController()
        ctrl.execute_command(5)
        assert ctrl.status_msg == "Command must be a JSON string."

    def test_load_non_object_file(self, tmp_path):
        ctrl = PenaltyController()
        target = tmp_path / "list.json"
        target.write_text("[1, 2, 3]", encoding="utf-8")
        ctrl.execute_command(json.dumps({"cmd": "load", "file": str(target)}))
        assert "does not hold a JSON object" in ctrl.status_msg
        assert ctrl.score == 0

    def test_reset_config(self):
        ctrl = PenaltyController()
        ctrl.config.set_param("aim_gain", 7.0)
        ctrl.reset_config()
        assert ctrl.config.aim_gain == 3.5
        assert ctrl.engine.config is ctrl.config


# ── Headless API ────────────────────────────────────────

class TestHeadless:

    def test_simulate_shot_deterministic(self):
        ctrl1 = PenaltyController()
        ctrl2 = PenaltyController()
        res1 = ctrl1.simulate_shot(*GOAL_GESTURE)
        res2 = ctrl2.simulate_shot(*GOAL_GESTURE)
        np.testing.assert_array_equal(res1["obs"], res2["obs"])
        assert res1["event"] == res2["event"] == "goal"
        assert res1["ticks"] == res2["ticks"]
        assert res1["reward"] == 1.0

    def test_simulate_shot_leaves_session_untouched(self):
        ctrl = PenaltyController()
        ctrl.score = 2
        before = (dataclasses.asdict(ctrl.ball), dataclasses.asdict(ctrl.keeper),
                  ctrl.clock, ctrl.score, ctrl.mode)
        ctrl.simulate_shot(*GOAL_GESTURE)
        after = (dataclasses.asdict(ctrl.ball), dataclasses.asdict(ctrl.keeper),
                 ctrl.clock, ctrl.score, ctrl.mode)
        assert before == after
        assert ctrl.pending_events == []

    def test_simulate_rejected_gesture(self):
        with pytest.raises(ValueError):
            PenaltyController().simulate_shot((100.0, 450.0), (100.0, 200.0))

    def test_simulate_with_state_override(self):
        res = PenaltyController().simulate_shot(*GOAL_GESTURE, state={"score": 4})
        assert res["event"] == "win"
        assert res["reward"] == 1.0

    def test_simulate_weak_shot(self):
        res = PenaltyController().simulate_shot(*WEAK_GESTURE)
        assert res["event"] == "miss"
        assert res["reason"] == "stalled"
        assert res["reward"] == pytest.approx(-0.2)

    def test_get_obs_and_reset(self):
        ctrl = PenaltyController()
        ctrl.fire_gesture(*GOAL_GESTURE)
        ctrl.step(DT)
        obs = ctrl.reset()
        assert obs.shape == (8,)
        assert obs.dtype == np.float32
        assert obs[0] == pytest.approx(ctrl.field.shooter_x)
        assert obs[4] == 0.0
