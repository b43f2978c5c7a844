"""
Tests for the tour engine state machine.
"""

import asyncio

import pytest

from onboarding.engine import TourEngine
from onboarding.flags import completion_flag_key
from onboarding.steps import TOUR_STEPS, TourStep


def make_engine(identity, flags, steps=TOUR_STEPS, **kwargs):
    kwargs.setdefault("auto_start_delay", 0)
    return TourEngine(identity, flags, steps=steps, **kwargs)


class TestConstruction:
    def test_starts_inactive(self, identity, flags):
        engine = make_engine(identity, flags)
        assert engine.active is False
        assert engine.current_step is None
        assert engine.progress_fraction == 0.0

    def test_empty_step_table_rejected(self, identity, flags):
        with pytest.raises(ValueError):
            TourEngine(identity, flags, steps=[])

    def test_duplicate_step_ids_rejected(self, identity, flags):
        steps = [TourStep(id="a", title="A", body=""), TourStep(id="a", title="B", body="")]
        with pytest.raises(ValueError):
            TourEngine(identity, flags, steps=steps)


class TestAutoStart:
    def test_new_identity_activates_at_first_step(self, identity, flags):
        engine = make_engine(identity, flags)
        assert engine.maybe_auto_start() is True
        assert engine.active is True
        assert engine.position == 0
        assert engine.current_step.id == "welcome"

    def test_flagged_identity_stays_inactive(self, identity, flags):
        flags.set(completion_flag_key("u1"))
        engine = make_engine(identity, flags)
        assert engine.maybe_auto_start() is False
        assert engine.active is False

    def test_no_identity_stays_inactive(self, identity, flags):
        identity.identity_id = None
        engine = make_engine(identity, flags)
        assert engine.maybe_auto_start() is False

    def test_waits_for_identity_loading(self, identity, flags):
        identity.loading = True
        engine = make_engine(identity, flags)
        assert engine.maybe_auto_start() is False
        identity.loading = False
        assert engine.maybe_auto_start() is True

    def test_repeated_calls_are_idempotent(self, identity, flags):
        engine = make_engine(identity, flags)
        engine.maybe_auto_start()
        engine.advance()
        assert engine.maybe_auto_start() is False
        assert engine.position == 1

    def test_never_restarts_after_completion(self, identity, flags):
        engine = make_engine(identity, flags)
        engine.maybe_auto_start()
        engine.skip()
        for _ in range(5):
            assert engine.maybe_auto_start() is False
        assert engine.active is False

    def test_lost_flag_write_does_not_restart_in_same_session(self, identity, flags, monkeypatch):
        def storage_full(key, value):
            raise OSError("storage full")

        engine = make_engine(identity, flags)
        engine.maybe_auto_start()
        monkeypatch.setattr(flags, "_write", storage_full)
        engine.complete()
        assert flags.get(completion_flag_key("u1")) is None
        assert engine.maybe_auto_start() is False

    def test_delay_is_deferred_to_scheduler(self, identity, flags, scheduler):
        engine = make_engine(identity, flags, auto_start_delay=1.0, scheduler=scheduler)
        assert engine.maybe_auto_start() is True
        assert engine.active is False
        assert engine.auto_start_pending is True
        assert scheduler.calls[0][0] == 1.0
        # Re-render while pending
        assert engine.maybe_auto_start() is False
        scheduler.fire_all()
        assert engine.active is True
        assert engine.auto_start_pending is False

    def test_identity_change_during_delay_cancels_activation(self, identity, flags, scheduler):
        engine = make_engine(identity, flags, auto_start_delay=1.0, scheduler=scheduler)
        engine.maybe_auto_start()
        identity.identity_id = "someone-else"
        scheduler.fire_all()
        assert engine.active is False

    def test_manual_start_cancels_pending_auto_start(self, identity, flags, scheduler):
        engine = make_engine(identity, flags, auto_start_delay=1.0, scheduler=scheduler)
        engine.maybe_auto_start()
        handle = scheduler.calls[0][2]
        engine.start()
        handle.cancel.assert_called_once()
        assert engine.auto_start_pending is False

    def test_delay_on_running_event_loop(self, identity, flags):
        async def scenario():
            engine = TourEngine(identity, flags, auto_start_delay=0.01)
            assert engine.maybe_auto_start() is True
            assert engine.active is False
            await asyncio.sleep(0.05)
            return engine.active

        assert asyncio.run(scenario()) is True


class TestTransitions:
    def test_advance_n_minus_one_reaches_terminal_step(self, identity, flags, three_steps):
        engine = make_engine(identity, flags, steps=three_steps)
        engine.start()
        for _ in range(len(three_steps) - 1):
            engine.advance()
        assert engine.active is True
        assert engine.current_step.id == "complete"
        assert engine.snapshot().is_last is True

    def test_advance_past_last_completes(self, identity, flags, three_steps):
        engine = make_engine(identity, flags, steps=three_steps)
        engine.start()
        for _ in range(len(three_steps)):
            engine.advance()
        assert engine.active is False
        assert flags.get(completion_flag_key("u1")) is True

    def test_single_step_tour(self, identity, flags):
        engine = make_engine(identity, flags, steps=[TourStep(id="only", title="Only", body="")])
        engine.start()
        assert engine.progress_fraction == 1.0
        engine.advance()
        assert engine.active is False

    def test_retreat_at_first_step_is_noop(self, identity, flags):
        engine = make_engine(identity, flags)
        engine.start()
        seen = []
        engine.changed.subscribe(seen.append)
        engine.retreat()
        assert engine.position == 0
        assert engine.active is True
        assert seen == []

    def test_retreat_moves_back(self, identity, flags):
        engine = make_engine(identity, flags)
        engine.start()
        engine.advance()
        engine.advance()
        engine.retreat()
        assert engine.position == 1

    def test_operations_while_inactive_are_noops(self, identity, flags):
        engine = make_engine(identity, flags)
        engine.advance()
        engine.retreat()
        engine.skip()
        engine.complete()
        assert engine.active is False
        assert flags.get(completion_flag_key("u1")) is None

    @pytest.mark.parametrize("position", [0, 3, len(TOUR_STEPS) - 1])
    def test_skip_from_any_position_persists_flag(self, identity, flags, position):
        engine = make_engine(identity, flags)
        engine.start()
        for _ in range(position):
            engine.advance()
        engine.skip()
        assert engine.active is False
        assert flags.get(completion_flag_key("u1")) is True

    def test_skip_twice_is_idempotent(self, identity, flags, monkeypatch):
        engine = make_engine(identity, flags)
        engine.start()
        writes = []
        original = flags._write
        monkeypatch.setattr(flags, "_write", lambda k, v: (writes.append(k), original(k, v)))
        engine.skip()
        engine.skip()
        engine.complete()
        assert writes == [completion_flag_key("u1")]

    def test_manual_replay_keeps_flag(self, identity, flags):
        flags.set(completion_flag_key("u1"))
        engine = make_engine(identity, flags)
        engine.start()
        assert engine.active is True
        assert flags.get(completion_flag_key("u1")) is True

    def test_progress_fraction(self, identity, flags):
        engine = make_engine(identity, flags)
        engine.start()
        engine.advance()
        assert engine.progress_fraction == pytest.approx(2 / len(TOUR_STEPS))

    def test_reset_does_not_persist(self, identity, flags):
        engine = make_engine(identity, flags)
        engine.start()
        engine.reset()
        assert engine.active is False
        assert flags.get(completion_flag_key("u1")) is None


class TestSignals:
    def test_changed_publishes_snapshots(self, identity, flags, three_steps):
        engine = make_engine(identity, flags, steps=three_steps)
        seen = []
        engine.changed.subscribe(seen.append)
        engine.start()
        engine.advance()
        engine.skip()
        assert [(s.active, s.position) for s in seen] == [(True, 0), (True, 1), (False, 0)]
        assert seen[1].step.id == "dashboard"

    def test_needs_profile_after_completion_with_incomplete_profile(self, identity, flags):
        engine = make_engine(identity, flags)
        seen = []
        engine.needs_profile.subscribe(seen.append)
        engine.start()
        engine.skip()
        assert seen == ["u1"]

    def test_no_needs_profile_when_profile_complete(self, identity, flags):
        identity.profile_complete = True
        engine = make_engine(identity, flags)
        seen = []
        engine.needs_profile.subscribe(seen.append)
        engine.start()
        engine.skip()
        assert seen == []

    def test_no_needs_profile_when_profile_unknown(self, identity, flags):
        identity.profile_complete = None
        engine = make_engine(identity, flags)
        seen = []
        engine.needs_profile.subscribe(seen.append)
        engine.start()
        engine.skip()
        assert seen == []

    def test_never_signals_needs_profile_mid_tour(self, identity, flags):
        engine = make_engine(identity, flags)
        seen = []
        engine.needs_profile.subscribe(seen.append)
        engine.start()
        for _ in range(len(TOUR_STEPS) - 1):
            engine.advance()
            assert seen == []
        engine.advance()
        assert seen == ["u1"]


def test_full_scenario(identity, flags, three_steps):
    """New identity walks the three-step tour to completion."""
    from onboarding.locator import LayoutSnapshot, Rect, StepHighlighter, Viewport

    engine = make_engine(identity, flags, steps=three_steps)
    highlighter = StepHighlighter()
    page = LayoutSnapshot({"dashboard": Rect(top=100, left=40, width=200, height=40)})
    viewport = Viewport(width=1280, height=800)

    assert engine.maybe_auto_start() is True
    assert engine.position == 0

    engine.advance()
    assert engine.position == 1
    placement = highlighter.focus(engine.current_step.anchor, page, viewport)
    assert placement.is_centered is False
    assert page.elements["dashboard"].style["z-index"] == "50"

    engine.advance()
    assert engine.position == 2
    highlighter.focus(engine.current_step.anchor, page, viewport)
    assert "z-index" not in page.elements["dashboard"].style

    engine.advance()
    assert engine.active is False
    assert flags.get("tutorial-completed-u1") is True
