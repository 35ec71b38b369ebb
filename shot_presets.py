"""
Shot Preset System
Five scripted penalties (goal, keeper save, wide miss, weak stalled shot,
match point) that set up a controller, fire a fixed gesture and optionally
run the simulation until the shot resolves.

Gestures are tuned for the default 960x540 field.
"""

from controller import PenaltyController

# Simulation timestep (one 60 Hz frame)
_DT = 1 / 60
_MAX_T = 10.0

# (start, end) pointer positions
GOAL_GESTURE = ((700.0, 450.0), (700.0, 200.0))    # straight, power 1.0
SAVE_GESTURE = ((700.0, 500.0), (700.0, 50.0))     # straight, capped at 1.6
MISS_GESTURE = ((600.0, 400.0), (800.0, 100.0))    # far right, power 1.2
WEAK_GESTURE = ((700.0, 300.0), (700.0, 340.0))    # downward drag, minimum power


def _prepare(ctrl):
    if ctrl is None:
        ctrl = PenaltyController()
    ctrl.restart()
    return ctrl


def _run(ctrl, max_t: float = _MAX_T) -> dict:
    """Step until the shot resolves; collect a trace of the flight."""
    elapsed = 0.0
    ticks = 0
    dove = False
    depths = [ctrl.ball.depth]
    event = None
    while elapsed < max_t:
        ctrl.step(_DT)
        elapsed += _DT
        ticks += 1
        dove = dove or any(ev["type"] == "keeper_dive" for ev in ctrl.physics_events)
        if ctrl.last_event is not None:
            event = ctrl.last_event
            break
        depths.append(ctrl.ball.depth)
    return {"event": event, "elapsed": elapsed, "ticks": ticks,
            "dove": dove, "depths": depths}


def _fire(ctrl, gesture, run: bool) -> dict:
    shot = ctrl.fire_gesture(*gesture)
    result = {"ctrl": ctrl, "shot": shot, "gesture": gesture,
              "event": None, "elapsed": 0.0, "ticks": 0, "dove": False,
              "depths": [ctrl.ball.depth]}
    if run:
        result.update(_run(ctrl))
    return result


class ShotPreset:
    """Each preset restarts the controller -> fires a gesture -> simulate -> result dict."""

    @staticmethod
    def scenario_1_goal(ctrl=None, run=True) -> dict:
        """Straight shot: the keeper dives early, recovers, and cannot dive again."""
        ctrl = _prepare(ctrl)
        return _fire(ctrl, GOAL_GESTURE, run)

    @staticmethod
    def scenario_2_save(ctrl=None, run=True) -> dict:
        """Full-power straight shot: the ball arrives while the keeper is still diving."""
        ctrl = _prepare(ctrl)
        return _fire(ctrl, SAVE_GESTURE, run)

    @staticmethod
    def scenario_3_miss(ctrl=None, run=True) -> dict:
        """Hard drag to the right: the ball passes wide of the right post."""
        ctrl = _prepare(ctrl)
        return _fire(ctrl, MISS_GESTURE, run)

    @staticmethod
    def scenario_4_weak(ctrl=None, run=True) -> dict:
        """Downward drag: minimum power, the ball stalls short of the goal."""
        ctrl = _prepare(ctrl)
        return _fire(ctrl, WEAK_GESTURE, run)

    @staticmethod
    def scenario_5_match_point(ctrl=None, run=True) -> dict:
        """One goal from victory: the goal shot wins the match."""
        ctrl = _prepare(ctrl)
        ctrl.score = ctrl.config.score_to_win - 1
        ctrl.pending_events.append({"type": "update_score", "score": ctrl.score})
        return _fire(ctrl, GOAL_GESTURE, run)


SCENARIOS = {
    "1": (ShotPreset.scenario_1_goal,        "1: Goal"),
    "2": (ShotPreset.scenario_2_save,        "2: Keeper Save"),
    "3": (ShotPreset.scenario_3_miss,        "3: Wide Miss"),
    "4": (ShotPreset.scenario_4_weak,        "4: Weak Shot"),
    "5": (ShotPreset.scenario_5_match_point, "5: Match Point"),
}
