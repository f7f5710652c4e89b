import logging

import pytest

from holdem.cards import Deck
from holdem.game import GameEngine
from holdem.models import ActionType, Call, Check, Fold, Phase, TableConfig

from .helpers import auto_complete_hand, create_engine, perform_actions, start_hand, total_chips


def test_start_hand_assigns_button_and_blinds():
    engine = create_engine(players=3)
    ctx = start_hand(engine)
    assert ctx.button == 0
    assert engine.consume_pre_events() == [
        {"ev": "POST_BLINDS", "button": 0, "sb_seat": 1, "bb_seat": 2, "sb": 10, "bb": 20}
    ]
    assert ctx.pot == 30
    assert ctx.phase == Phase.PRE_FLOP
    assert all(len(seat.hole_cards) == 2 for seat in engine.seats if seat)
    # Dealer is first to act three-handed: the seat after the big blind.
    assert engine.next_actor() == 0


def test_three_way_limp_reaches_flop_with_small_blind_first():
    engine = create_engine(players=3)
    start_hand(engine)
    events = perform_actions(
        engine,
        [(0, ActionType.CALL, None), (1, ActionType.CALL, None), (2, ActionType.CHECK, None)],
    )
    ctx = engine.hand
    assert ctx.pot == 60
    assert ctx.phase == Phase.FLOP
    assert len(ctx.community) == 3
    assert [event["ev"] for event in events] == ["CALL", "CALL", "CHECK", "FLOP"]
    assert ctx.current_bet == 0
    assert all(not seat.has_acted and seat.committed == 0 for seat in engine.seats if seat)
    assert engine.next_actor() == 1


def test_heads_up_button_posts_small_blind_and_acts_first():
    engine = create_engine(players=2)
    start_hand(engine)
    pre_events = engine.consume_pre_events()
    assert pre_events[0]["sb_seat"] == 0
    assert pre_events[0]["bb_seat"] == 1
    assert engine.next_actor() == 0

    window = engine.legal_actions(0)
    assert window.legal == (ActionType.FOLD, ActionType.CALL, ActionType.RAISE_TO)
    assert window.to_call == 10
    assert window.min_raise_to == 40

    engine.apply_action(0, ActionType.CALL)
    option = engine.legal_actions(1)
    assert option.legal == (ActionType.FOLD, ActionType.CHECK, ActionType.RAISE_TO)
    engine.apply_action(1, ActionType.CHECK)
    assert engine.hand.phase == Phase.FLOP
    # Postflop the big blind acts first heads-up.
    assert engine.next_actor() == 1


def test_button_rotates_between_hands():
    engine = create_engine(players=3)
    start_hand(engine, seed=1)
    auto_complete_hand(engine)
    assert engine.is_hand_complete()

    ctx = start_hand(engine, seed=2)
    assert ctx.button == 1
    assert ctx.blinds.small_blind == 2
    assert ctx.blinds.big_blind == 0
    assert engine.next_actor() == 1


def test_busted_player_is_not_dealt_in():
    engine = create_engine(players=3)
    engine.seats[1].stack = 0
    ctx = start_hand(engine)
    assert ctx.blinds.small_blind == 0
    assert ctx.blinds.big_blind == 2
    assert not engine.seats[1].in_hand
    assert engine.seats[1].hole_cards == []


def test_start_hand_requires_two_players_and_no_hand_in_progress():
    engine = create_engine(players=1, seats=3)
    assert not engine.can_start_hand()
    with pytest.raises(RuntimeError, match="Not enough"):
        engine.start_hand()

    engine.assign_seat("Second")
    start_hand(engine)
    with pytest.raises(RuntimeError, match="already in progress"):
        engine.start_hand()


def test_hand_ids_are_unique_and_increasing():
    engine = create_engine(players=2)
    first = start_hand(engine, seed=1).hand_id
    auto_complete_hand(engine)
    second = start_hand(engine, seed=2).hand_id
    assert first.startswith("H-")
    assert first != second
    assert first.endswith("00000") and second.endswith("00001")


def test_early_termination_awards_pot_to_last_player():
    engine = create_engine(players=4)
    start_hand(engine)
    events = perform_actions(
        engine,
        [(3, ActionType.FOLD, None), (0, ActionType.FOLD, None), (1, ActionType.FOLD, None)],
    )
    assert engine.is_hand_complete()
    assert {"ev": "POT_AWARD", "seat": 2, "amount": 30, "pot": 0} in events
    assert events[-1]["ev"] == "HAND_END"
    assert engine.seats[2].stack == 1_010
    assert engine.seats[1].stack == 990
    assert engine.hand.pot == 0
    assert engine.hand.community == []


def test_showdown_reveals_contending_hands():
    engine = create_engine(players=3)
    start_hand(engine, seed=9)
    auto_complete_hand(engine)
    payload = engine.end_hand_payload()
    assert payload["aborted"] is False
    assert len(payload["community"]) == 5
    assert set(payload["revealed"]) == {"0", "1", "2"}
    assert sum(payout["delta"] for payout in payload["payouts"]) == 0
    assert sum(entry["stack"] for entry in payload["stacks"]) == 3_000


def test_submit_action_reports_reason_and_leaves_state_untouched():
    engine = create_engine(players=3)
    start_hand(engine)
    before = engine.snapshot()

    result = engine.submit_action(1, ActionType.CALL)
    assert not result.ok
    assert result.reason == "OUT_OF_TURN"
    assert result.state == before

    result = engine.submit_action(0, ActionType.CHECK)
    assert result.reason == "CANNOT_CHECK"

    result = engine.submit_action(0, "bogus")
    assert result.reason == "UNKNOWN_ACTION"

    result = engine.submit_action(0, ActionType.RAISE_TO)
    assert result.reason == "RAISE_REQUIRES_AMOUNT"

    result = engine.submit_action(0, "call")
    assert result.ok
    assert result.events[0] == {"ev": "CALL", "seat": 0, "amount": 20, "all_in": False}


def test_actions_rejected_once_hand_is_over():
    engine = create_engine(players=2)
    start_hand(engine)
    engine.apply_action(0, ActionType.FOLD)
    result = engine.submit_action(1, ActionType.CHECK)
    assert result.reason == "HAND_NOT_ACTIVE"
    assert engine.next_actor() is None


def test_force_action_prefers_check_then_call_then_fold():
    engine = create_engine(players=3)
    start_hand(engine)

    called = engine.force_action(0)
    assert called.ok
    assert called.events[0]["ev"] == "CALL"

    folded = engine.force_action(1, fallback=Fold())
    assert folded.events[0]["ev"] == "FOLD"

    wrong_seat = engine.force_action(1)
    assert not wrong_seat.ok

    checked = engine.force_action(2)
    assert checked.events[0]["ev"] == "CHECK"
    assert engine.hand.phase == Phase.FLOP


def test_force_action_skips_illegal_fallback():
    engine = create_engine(players=3)
    start_hand(engine)
    result = engine.force_action(0, fallback=Check())
    assert result.ok
    assert result.events[0]["ev"] == "CALL"


def test_leave_outside_a_hand_frees_the_seat():
    engine = create_engine(players=3)
    events = engine.leave(1)
    assert events == [{"ev": "LEAVE", "seat": 1}]
    assert engine.seats[1] is None
    assert engine.assign_seat("Newcomer").seat == 1


def test_leave_mid_hand_folds_out_of_turn_and_vacates_at_hand_end():
    engine = create_engine(players=3)
    start_hand(engine)

    events = engine.leave(1)
    assert {"ev": "FOLD", "seat": 1, "left": True} in events
    assert engine.seats[1] is not None
    assert engine.seats[1].has_folded
    assert engine.next_actor() == 0
    assert engine.hand.pot == 30

    engine.apply_action(0, ActionType.FOLD)
    assert engine.is_hand_complete()
    assert engine.seats[1] is None
    assert engine.seats[2].stack == 1_010


def test_leave_by_current_actor_passes_the_turn():
    engine = create_engine(players=4)
    start_hand(engine)
    assert engine.next_actor() == 3
    engine.leave(3)
    assert engine.next_actor() == 0


def test_leave_that_leaves_one_player_ends_the_hand():
    engine = create_engine(players=2)
    start_hand(engine)
    events = engine.leave(0)
    assert events[-1]["ev"] == "HAND_END"
    assert engine.seats[0] is None
    assert engine.seats[1].stack == 1_010


def test_deck_exhaustion_mid_hand_aborts_and_refunds(monkeypatch):
    def short_deck(seed=None):
        deck = Deck()
        deck.deal(45)
        return deck

    monkeypatch.setattr("holdem.game.build_deck", short_deck)
    engine = create_engine(players=3)
    start_hand(engine)
    events = perform_actions(
        engine,
        [(0, ActionType.CALL, None), (1, ActionType.CALL, None), (2, ActionType.CHECK, None)],
    )
    aborted = events[-1]
    assert aborted["ev"] == "HAND_ABORTED"
    assert aborted["refunds"] == {0: 20, 1: 20, 2: 20}
    assert engine.hand.aborted
    assert engine.is_hand_complete()
    assert [seat.stack for seat in engine.seats] == [1_000, 1_000, 1_000]
    assert engine.end_hand_payload()["aborted"] is True


def test_deck_exhaustion_while_dealing_aborts_before_blinds(monkeypatch):
    def tiny_deck(seed=None):
        deck = Deck()
        deck.deal(50)
        return deck

    monkeypatch.setattr("holdem.game.build_deck", tiny_deck)
    engine = create_engine(players=3)
    ctx = start_hand(engine)
    pre_events = engine.consume_pre_events()
    assert pre_events[-1]["ev"] == "HAND_ABORTED"
    assert ctx.aborted
    assert all(seat.stack == 1_000 and not seat.hole_cards for seat in engine.seats)
    assert engine.can_start_hand()


def test_payout_listeners_receive_hand_results(caplog):
    engine = create_engine(players=3)
    received = []

    def broken_listener(hand_id, payouts):
        raise RuntimeError("boom")

    engine.add_payout_listener(broken_listener)
    engine.add_payout_listener(lambda hand_id, payouts: received.append((hand_id, payouts)))
    ctx = start_hand(engine)

    with caplog.at_level(logging.ERROR, logger="holdem.engine"):
        perform_actions(engine, [(0, ActionType.FOLD, None), (1, ActionType.FOLD, None)])

    assert "Payout listener failed" in caplog.text
    assert len(received) == 1
    hand_id, payouts = received[0]
    assert hand_id == ctx.hand_id
    by_seat = {payout.seat: payout for payout in payouts}
    assert by_seat[2].amount == 30 and by_seat[2].delta == 10
    assert by_seat[1].delta == -10
    assert by_seat[0].delta == 0


def test_snapshot_hides_other_players_hole_cards():
    engine = create_engine(players=3)
    start_hand(engine)
    view = engine.snapshot(viewer=0)
    players = {player["seat"]: player for player in view.players}
    assert len(players[0]["hole"]) == 2
    assert players[1]["hole"] == [] and players[1]["hole_count"] == 2
    assert players[0]["is_button"]
    assert view.active_seat == 0
    assert view.active_player_index == 0
    assert view.min_raise == 20

    full = engine.snapshot()
    assert all(len(player["hole"]) == 2 for player in full.players)
    as_dict = view.as_dict()
    assert as_dict["phase"] == "PRE_FLOP"
    assert as_dict["pot"] == 30


def test_seat_assignment_rules():
    engine = GameEngine(TableConfig(seats=2))
    first = engine.assign_seat("Ann")
    assert engine.assign_seat("ann") is first
    engine.assign_seat("Ben")
    with pytest.raises(RuntimeError, match="Table is full"):
        engine.assign_seat("Cat")
    with pytest.raises(ValueError, match="NAME_REQUIRED"):
        GameEngine(TableConfig(seats=2)).assign_seat("   ")


def test_explicit_seat_claims():
    engine = GameEngine(TableConfig(seats=4, starting_stack=500))
    player = engine.assign_seat("Dee", seat=3)
    assert player.seat == 3
    assert player.stack == 500
    assert engine.assign_seat("Eve").seat == 0
    with pytest.raises(ValueError, match="Seat 3 is taken"):
        engine.assign_seat("Fay", seat=3)
    with pytest.raises(ValueError, match="does not exist"):
        engine.assign_seat("Fay", seat=4)


def test_table_config_validation():
    assert TableConfig().bot_fold_threshold == 30
    with pytest.raises(ValueError):
        TableConfig(seats=1)
    with pytest.raises(ValueError):
        TableConfig(sb=30, bb=20)


def test_chips_are_conserved_through_a_hand():
    engine = create_engine(players=4)
    start_hand(engine, seed=77)
    assert total_chips(engine) == 4_000
    engine.apply_action(3, ActionType.RAISE_TO, 60)
    assert total_chips(engine) == 4_000
    engine.apply_action(0, ActionType.CALL)
    auto_complete_hand(engine)
    assert total_chips(engine) == 4_000
    assert engine.hand.pot == 0


def test_call_action_instance_is_accepted():
    engine = create_engine(players=2)
    start_hand(engine)
    events = engine.apply_action(0, Call())
    assert events[0]["amount"] == 10
