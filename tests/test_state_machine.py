"""Tests for PotatoGame: transitions, authorization, deadlines and invariants."""
import random

import pytest

from core.clock import CallContext, FixedCaller, ManualClock
from core.deadline import MAX_BLOCK
from core.events import EventType
from core.exceptions import (
    AlreadyActive,
    ClockRegression,
    DeadlinePassed,
    HotPotatoException,
    HostCollaboratorError,
    IdentityUnresolvable,
    InvalidDeadline,
    NotActive,
    NotHolder,
    NotStarter,
    InvalidTarget,
    SelfPassNotAllowed,
    ClockUnavailable,
)
from core.state_machine import PotatoGame


def assert_consistent(game):
    assert (game.get_holder() is not None) == game.is_active()
    assert game.get_deadline_window() > 0


class TestConstruction:
    def test_new_game_is_inactive(self):
        game = PotatoGame.create(10)
        assert game.get_deadline_window() == 10
        assert not game.is_active()
        assert game.get_holder() is None
        assert game.get_starter() is None
        assert game.get_last_transfer_time() == 0

    @pytest.mark.parametrize("window", [0, -1, True, 1.5, "10", None])
    def test_invalid_deadline_rejected(self, window):
        with pytest.raises(InvalidDeadline):
            PotatoGame.create(window)

    def test_smallest_window_accepted(self):
        assert PotatoGame.create(1).get_deadline_window() == 1

    def test_window_bounded_by_column_range(self):
        assert PotatoGame.create(MAX_BLOCK).get_deadline_window() == MAX_BLOCK
        with pytest.raises(InvalidDeadline):
            PotatoGame.create(MAX_BLOCK + 1)
        with pytest.raises(InvalidDeadline):
            PotatoGame.create(2 ** 64)


class TestStartGame:
    def test_start_sets_holder_and_starter(self, clock, as_caller):
        game = PotatoGame.create(10)
        clock.set(3)
        result = game.start_game(as_caller("alice"), "bob")

        assert game.is_active()
        assert game.get_holder() == "bob"
        assert game.get_starter() == "alice"
        assert game.get_last_transfer_time() == 3
        assert [e.event_type for e in result.events] == [EventType.GAME_STARTED]
        assert result.events[0].actor == "alice"
        assert result.events[0].data == {"holder": "bob"}

    def test_start_twice_rejected_and_state_kept(self, clock, as_caller):
        """Scenario 5: start while active fails, holder and starter unchanged."""
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        clock.set(4)

        with pytest.raises(AlreadyActive):
            game.start_game(as_caller("carol"), "dave")

        assert game.get_holder() == "bob"
        assert game.get_starter() == "alice"
        assert game.get_last_transfer_time() == 0

    def test_start_then_query_round_trip(self, as_caller):
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "A")
        assert game.get_holder() == "A"
        assert game.is_active()


class TestPassPotato:
    def test_scenario_pass_then_check_within_window(self, clock, as_caller):
        """Scenario 1."""
        game = PotatoGame.create(10)
        game.start_game(as_caller("starter"), "P1")
        assert game.get_holder() == "P1"

        clock.set(5)
        result = game.pass_potato(as_caller("P1"), "P2")
        assert game.get_holder() == "P2"
        assert game.get_last_transfer_time() == 5
        assert result.events[0].event_type == EventType.POTATO_PASSED
        assert result.events[0].data == {"from": "P1", "to": "P2"}

        clock.set(12)
        check = game.check_deadline(as_caller("anyone"))
        assert check.eliminated is False
        assert check.events == []
        assert game.is_active()

    def test_pass_when_inactive(self, as_caller):
        game = PotatoGame.create(10)
        with pytest.raises(NotActive):
            game.pass_potato(as_caller("bob"), "carol")

    def test_pass_by_non_holder_leaves_state(self, clock, as_caller):
        """Scenario 3."""
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        before = game.snapshot()
        clock.set(2)

        with pytest.raises(NotHolder) as exc_info:
            game.pass_potato(as_caller("carol"), "alice")

        assert exc_info.value.caller == "carol"
        assert game.get_holder() == "bob"
        assert game.snapshot() == before

    def test_not_active_checked_before_holder(self, as_caller):
        game = PotatoGame.create(10)
        with pytest.raises(NotActive):
            game.pass_potato(as_caller("stranger"), "x")

    def test_holder_checked_before_deadline(self, clock, as_caller):
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        clock.set(50)
        with pytest.raises(NotHolder):
            game.pass_potato(as_caller("carol"), "alice")

    def test_pass_rejected_exactly_at_window(self, clock, as_caller):
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        clock.set(10)

        with pytest.raises(DeadlinePassed) as exc_info:
            game.pass_potato(as_caller("bob"), "carol")

        assert exc_info.value.elapsed == 10
        assert exc_info.value.deadline_window == 10
        assert game.get_holder() == "bob"
        assert game.get_last_transfer_time() == 0

    def test_pass_allowed_one_block_before_window(self, clock, as_caller):
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        clock.set(9)
        game.pass_potato(as_caller("bob"), "carol")
        assert game.get_holder() == "carol"

    def test_pass_in_same_block_as_start(self, as_caller):
        game = PotatoGame.create(1)
        game.start_game(as_caller("alice"), "bob")
        game.pass_potato(as_caller("bob"), "carol")
        assert game.get_holder() == "carol"

    def test_clock_regression_is_infrastructure_error(self, clock, as_caller):
        game = PotatoGame.create(10)
        clock.set(5)
        game.start_game(as_caller("alice"), "bob")
        before = game.snapshot()
        clock.set(3)

        with pytest.raises(ClockRegression) as exc_info:
            game.pass_potato(as_caller("bob"), "carol")

        assert isinstance(exc_info.value, HostCollaboratorError)
        assert not isinstance(exc_info.value, HotPotatoException)
        assert game.snapshot() == before


class TestSelfPassPolicy:
    def test_self_pass_allowed_resets_timer(self, clock, as_caller):
        game = PotatoGame.create(10, allow_self_pass=True)
        game.start_game(as_caller("alice"), "bob")
        clock.set(7)

        game.pass_potato(as_caller("bob"), "bob")

        assert game.get_holder() == "bob"
        assert game.get_last_transfer_time() == 7
        assert game.get_remaining(clock) == 10

    def test_self_pass_disallowed(self, clock, as_caller):
        game = PotatoGame.create(10, allow_self_pass=False)
        game.start_game(as_caller("alice"), "bob")
        clock.set(7)

        with pytest.raises(SelfPassNotAllowed):
            game.pass_potato(as_caller("bob"), "bob")

        assert game.get_holder() == "bob"
        assert game.get_last_transfer_time() == 0

    def test_disallowed_policy_still_permits_other_targets(self, as_caller):
        game = PotatoGame.create(10, allow_self_pass=False)
        game.start_game(as_caller("alice"), "bob")
        game.pass_potato(as_caller("bob"), "alice")
        assert game.get_holder() == "alice"

    def test_deadline_checked_before_self_pass_policy(self, clock, as_caller):
        game = PotatoGame.create(10, allow_self_pass=False)
        game.start_game(as_caller("alice"), "bob")
        clock.set(10)
        with pytest.raises(DeadlinePassed):
            game.pass_potato(as_caller("bob"), "bob")


class TestCheckDeadline:
    def test_scenario_elimination(self, clock, as_caller):
        """Scenario 2."""
        game = PotatoGame.create(10)
        game.start_game(as_caller("starter"), "P1")
        clock.set(5)
        game.pass_potato(as_caller("P1"), "P2")

        clock.set(16)
        result = game.check_deadline(as_caller("anyone"))

        assert result.eliminated is True
        assert result.eliminated_holder == "P2"
        assert not game.is_active()
        assert game.get_holder() is None
        assert game.get_starter() == "starter"
        event = result.events[0]
        assert event.event_type == EventType.HOLDER_ELIMINATED
        assert event.block == 16
        assert event.data == {"eliminated": "P2", "elapsed": 11}

    def test_eliminates_exactly_at_window(self, clock, as_caller):
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        clock.set(10)
        assert game.check_deadline(as_caller("carol")).eliminated is True

    def test_noop_is_idempotent(self, clock, as_caller):
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        clock.set(4)

        first = game.check_deadline(as_caller("carol"))
        snapshot = game.snapshot()
        second = game.check_deadline(as_caller("carol"))

        assert first == second
        assert first.eliminated is False
        assert game.snapshot() == snapshot

    def test_after_elimination_reports_not_active(self, clock, as_caller):
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        clock.set(20)
        game.check_deadline(as_caller("carol"))
        snapshot = game.snapshot()

        with pytest.raises(NotActive):
            game.check_deadline(as_caller("carol"))
        with pytest.raises(NotActive):
            game.check_deadline(as_caller("carol"))
        assert game.snapshot() == snapshot

    def test_before_any_game(self, as_caller):
        with pytest.raises(NotActive):
            PotatoGame.create(10).check_deadline(as_caller("carol"))

    def test_does_not_need_caller_identity(self, clock):
        game = PotatoGame.create(10)
        game.start_game(CallContext(FixedCaller("alice"), clock), "bob")
        clock.set(10)
        anonymous = CallContext(FixedCaller(None), clock)
        assert game.check_deadline(anonymous).eliminated is True


class TestEndGame:
    def test_starter_ends_game(self, clock, as_caller):
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        clock.set(3)

        result = game.end_game(as_caller("alice"))

        assert not game.is_active()
        assert game.get_holder() is None
        assert game.get_starter() == "alice"
        assert game.get_deadline_window() == 10
        assert result.events[0].event_type == EventType.GAME_ENDED
        assert result.events[0].block is None
        assert result.events[0].data == {"was_active": True, "last_holder": "bob"}

    def test_end_does_not_need_clock(self, clock):
        class BrokenClock:
            def now(self):
                raise ClockUnavailable("ledger offline")

        game = PotatoGame.create(10)
        game.start_game(CallContext(FixedCaller("alice"), clock), "bob")

        game.end_game(CallContext(FixedCaller("alice"), BrokenClock()))

        assert not game.is_active()
        assert game.get_holder() is None

    def test_non_starter_rejected(self, as_caller):
        """Scenario 4."""
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")

        with pytest.raises(NotStarter):
            game.end_game(as_caller("bob"))

        assert game.is_active()
        assert game.get_holder() == "bob"

    def test_end_inactive_game_is_noop(self, clock, as_caller):
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        clock.set(12)
        game.check_deadline(as_caller("carol"))

        result = game.end_game(as_caller("alice"))

        assert not game.is_active()
        assert result.events[0].data == {"was_active": False, "last_holder": None}

    def test_end_before_any_start(self, as_caller):
        with pytest.raises(NotStarter):
            PotatoGame.create(10).end_game(as_caller("alice"))

    def test_restart_overwrites_starter(self, clock, as_caller):
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        game.end_game(as_caller("alice"))

        clock.set(8)
        game.start_game(as_caller("carol"), "dave")

        assert game.get_starter() == "carol"
        assert game.get_last_transfer_time() == 8
        with pytest.raises(NotStarter):
            game.end_game(as_caller("alice"))


class TestRemaining:
    def test_zero_when_inactive(self, clock):
        assert PotatoGame.create(10).get_remaining(clock) == 0

    def test_counts_down_and_saturates(self, clock, as_caller):
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        clock.set(5)
        game.pass_potato(as_caller("bob"), "carol")

        clock.set(12)
        assert game.get_remaining(clock) == 3
        clock.set(15)
        assert game.get_remaining(clock) == 0
        clock.set(100)
        assert game.get_remaining(clock) == 0

    def test_zero_after_end(self, as_caller, clock):
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        game.end_game(as_caller("alice"))
        assert game.get_remaining(clock) == 0


class TestIdentity:
    @pytest.mark.parametrize("identity", [None, "", "   "])
    def test_unresolvable_caller(self, identity, clock):
        game = PotatoGame.create(10)
        ctx = CallContext(FixedCaller(identity), clock)

        with pytest.raises(IdentityUnresolvable):
            game.start_game(ctx, "bob")

        assert not game.is_active()
        assert game.get_starter() is None


class TestTargetNormalization:
    def test_start_target_is_stripped(self, as_caller):
        game = PotatoGame.create(10)
        result = game.start_game(as_caller("alice"), "  bob ")

        assert game.get_holder() == "bob"
        assert result.events[0].data == {"holder": "bob"}
        game.pass_potato(as_caller(" bob"), "carol")
        assert game.get_holder() == "carol"

    def test_pass_target_is_stripped(self, as_caller):
        game = PotatoGame.create(10)
        game.start_game(as_caller("alice"), "bob")
        game.pass_potato(as_caller("bob"), "carol ")
        assert game.get_holder() == "carol"

    def test_padded_self_pass_still_blocked(self, as_caller):
        game = PotatoGame.create(10, allow_self_pass=False)
        game.start_game(as_caller("alice"), "bob")

        with pytest.raises(SelfPassNotAllowed):
            game.pass_potato(as_caller("bob"), " bob")

        assert game.get_holder() == "bob"

    @pytest.mark.parametrize("target", ["", "   ", None])
    def test_blank_target_rejected(self, target, as_caller):
        game = PotatoGame.create(10)
        with pytest.raises(InvalidTarget):
            game.start_game(as_caller("alice"), target)
        assert not game.is_active()

        game.start_game(as_caller("alice"), "bob")
        before = game.snapshot()
        with pytest.raises(InvalidTarget):
            game.pass_potato(as_caller("bob"), target)
        assert game.snapshot() == before


class TestInvariants:
    def test_random_walk_keeps_invariants(self):
        rng = random.Random(1234)
        players = ["alice", "bob", "carol", "dave"]
        clock = ManualClock()
        game = PotatoGame.create(5, allow_self_pass=rng.choice([True, False]))
        last_seen = game.get_last_transfer_time()

        for _ in range(500):
            clock.advance(rng.randint(0, 3))
            ctx = CallContext(FixedCaller(rng.choice(players)), clock)
            before = game.snapshot()
            operation = rng.choice(["start", "pass", "check", "end"])
            try:
                if operation == "start":
                    game.start_game(ctx, rng.choice(players))
                elif operation == "pass":
                    game.pass_potato(ctx, rng.choice(players))
                elif operation == "check":
                    game.check_deadline(ctx)
                else:
                    game.end_game(ctx)
            except HotPotatoException:
                assert game.snapshot() == before

            assert_consistent(game)
            assert game.get_last_transfer_time() >= last_seen
            last_seen = game.get_last_transfer_time()
