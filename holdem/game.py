from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from .betting import BettingRound, commit_chips
from .bots import bot_decision
from .cards import Card, Deck, DeckExhausted, build_deck, cards_to_labels
from .models import (
    Action,
    ActionResult,
    ActionType,
    ActionWindow,
    Call,
    Check,
    Fold,
    IllegalAction,
    InvalidSeatState,
    Payout,
    Phase,
    PlayerSeat,
    TableConfig,
    TableSnapshot,
    make_action,
)
from .seating import BlindPositions, SeatMap
from .showdown import Settlement, award_uncontested, payouts_for, resolve_showdown

LOGGER = logging.getLogger("holdem.engine")

# GameEngine owns all table state. Callers read snapshots and go through
# submit_action / force_action / bot_action / leave; nothing else mutates
# bets, pot or phase. Timers and pacing live with the caller.

PayoutListener = Callable[[str, List[Payout]], None]
Event = Dict[str, object]

BOT_NAMES = ["Alice", "Bob", "Charlie", "Diana", "Eve", "Frank", "Grace", "Henry"]


@dataclass
class HandContext:
    # All mutable info about the current hand (deck, pot, betting round, etc.).
    hand_id: str
    seed: int
    deck: Deck
    blinds: BlindPositions
    community: List[Card] = field(default_factory=list)
    phase: Phase = Phase.PRE_FLOP
    pot: int = 0
    betting: Optional[BettingRound] = None
    pre_events: List[Event] = field(default_factory=list)
    revealed: Dict[int, List[str]] = field(default_factory=dict)
    payouts: List[Payout] = field(default_factory=list)
    aborted: bool = False

    @property
    def button(self) -> int:
        return self.blinds.dealer

    @property
    def current_bet(self) -> int:
        return self.betting.current_bet if self.betting else 0


class GameEngine:
    """Texas Hold'em rules engine for a single table."""

    def __init__(self, config: TableConfig, rng: Optional[random.Random] = None) -> None:
        self.config = config
        self.table = SeatMap(config.seats, config.starting_stack)
        self.button: Optional[int] = None
        self.hand_counter = 0
        self.hand: Optional[HandContext] = None
        self.lock = threading.RLock()
        self.bot_rng = rng or random.Random()
        self._payout_listeners: List[PayoutListener] = []

    @property
    def seats(self) -> List[Optional[PlayerSeat]]:
        return self.table.seats

    # Seat management -------------------------------------------------

    def assign_seat(self, name: str, *, is_bot: bool = False, seat: Optional[int] = None) -> PlayerSeat:
        with self.lock:
            existing = self.table.find(name) if name.strip() else None
            if existing and not existing.leaving:
                return existing
            player = self.table.take_seat(name, is_bot=is_bot, seat=seat)
            LOGGER.info("Seat %s taken by %s%s", player.seat, player.name, " (bot)" if is_bot else "")
            return player

    def add_bot(self, name: Optional[str] = None) -> PlayerSeat:
        with self.lock:
            if name is None:
                taken = {player.name for player in self.table.players()}
                name = next(
                    (candidate for candidate in BOT_NAMES if candidate not in taken),
                    f"Bot {len(taken) + 1}",
                )
            return self.assign_seat(name, is_bot=True)

    def leave(self, seat_idx: int) -> List[Event]:
        """Stand a player up. Mid-hand this is an immediate fold; the seat empties when the hand ends."""
        with self.lock:
            player = self.seats[seat_idx]
            if player is None:
                raise InvalidSeatState(f"Seat {seat_idx} is empty")
            ctx = self.hand
            if ctx is None or ctx.phase == Phase.FINISHED or not player.in_hand:
                self.table.vacate(seat_idx)
                LOGGER.info("Seat %s (%s) left the table", seat_idx, player.name)
                return [{"ev": "LEAVE", "seat": seat_idx}]

            player.leaving = True
            events: List[Event] = [{"ev": "LEAVE", "seat": seat_idx}]
            if player.is_contending:
                if ctx.betting is not None:
                    events.append(ctx.betting.fold_out_of_turn(seat_idx))
                else:
                    player.has_folded = True
                    events.append({"ev": "FOLD", "seat": seat_idx, "left": True})
                events.extend(self._progress_safely(ctx))
            LOGGER.info("Seat %s (%s) left mid-hand %s", seat_idx, player.name, ctx.hand_id)
            return events

    def set_connected(self, seat_idx: int, connected: bool) -> None:
        seat = self.seats[seat_idx]
        if seat:
            seat.connected = connected

    def add_payout_listener(self, listener: PayoutListener) -> None:
        self._payout_listeners.append(listener)

    # Hand lifecycle --------------------------------------------------

    def can_start_hand(self) -> bool:
        in_progress = self.hand is not None and self.hand.phase != Phase.FINISHED
        return not in_progress and len(self.table.occupied()) >= 2

    def start_hand(self, seed: Optional[int] = None) -> HandContext:
        with self.lock:
            if self.hand is not None and self.hand.phase != Phase.FINISHED:
                raise RuntimeError("Hand already in progress")
            if len(self.table.occupied()) < 2:
                raise RuntimeError("Not enough active players to start a hand")

            for player in self.table.players():
                player.reset_for_hand()
                player.in_hand = player.stack > 0

            if seed is None:
                seed = int(time.time() * 1000) & 0xFFFFFFFF
            blinds = self.table.rotate(self.button)
            self.button = blinds.dealer

            hand_id = f"H-{time.strftime('%Y%m%d')}-{self.hand_counter:05d}"
            self.hand_counter += 1
            ctx = HandContext(hand_id=hand_id, seed=seed, deck=build_deck(seed), blinds=blinds)
            self.hand = ctx
            LOGGER.info(
                "Starting hand %s button=%s sb=%s bb=%s players=%s",
                hand_id,
                blinds.dealer,
                blinds.small_blind,
                blinds.big_blind,
                self.table.occupied(),
            )

            try:
                self._deal_hole_cards(ctx)
            except DeckExhausted as exc:
                ctx.pre_events.extend(self._abort(ctx, exc))
                return ctx
            self._post_blinds(ctx)
            ctx.betting = BettingRound(
                self.seats,
                start_seat=(blinds.big_blind + 1) % self.config.seats,
                big_blind=self.config.bb,
                current_bet=max(self.seats[blinds.small_blind].committed, self.seats[blinds.big_blind].committed),
            )
            # Blinds can put everyone all-in before anybody acts.
            ctx.pre_events.extend(self._progress_safely(ctx))
            return ctx

    def _deal_hole_cards(self, ctx: HandContext) -> None:
        for _ in range(2):
            for seat_idx in self._rotation(ctx.button + 1):
                player = self.seats[seat_idx]
                assert player is not None
                player.hole_cards.extend(ctx.deck.deal(1))

    def _post_blinds(self, ctx: HandContext) -> None:
        sb_player = self.seats[ctx.blinds.small_blind]
        bb_player = self.seats[ctx.blinds.big_blind]
        assert sb_player and bb_player
        ctx.pot += commit_chips(sb_player, self.config.sb)
        ctx.pot += commit_chips(bb_player, self.config.bb)
        ctx.pre_events.append(
            {
                "ev": "POST_BLINDS",
                "button": ctx.button,
                "sb_seat": ctx.blinds.small_blind,
                "bb_seat": ctx.blinds.big_blind,
                "sb": sb_player.committed,
                "bb": bb_player.committed,
            }
        )

    def _rotation(self, start: int) -> List[int]:
        size = self.config.seats
        ordered = []
        for step in range(size):
            idx = (start + step) % size
            player = self.seats[idx]
            if player and player.in_hand:
                ordered.append(idx)
        return ordered

    def consume_pre_events(self) -> List[Event]:
        if not self.hand:
            return []
        events = list(self.hand.pre_events)
        self.hand.pre_events.clear()
        return events

    # Action handling -------------------------------------------------

    def legal_actions(self, seat_idx: int) -> ActionWindow:
        betting = self._active_round()
        return betting.window(seat_idx)

    def next_actor(self) -> Optional[int]:
        if not self.hand or self.hand.phase == Phase.FINISHED or self.hand.betting is None:
            return None
        return self.hand.betting.actor

    def apply_action(
        self,
        seat_idx: int,
        action: Union[Action, ActionType, str, None],
        amount: Optional[int] = None,
    ) -> List[Event]:
        """Apply one action or raise IllegalAction, leaving state unchanged."""
        with self.lock:
            betting = self._active_round()
            ctx = self.hand
            assert ctx is not None
            move = make_action(action, amount)
            before = betting.collected
            events = betting.apply(seat_idx, move)
            ctx.pot += betting.collected - before
            LOGGER.debug("Hand %s seat=%s action=%s", ctx.hand_id, seat_idx, move)
            events.extend(self._progress_safely(ctx))
            return events

    def submit_action(
        self,
        seat_idx: int,
        action: Union[Action, ActionType, str, None],
        amount: Optional[int] = None,
    ) -> ActionResult:
        with self.lock:
            try:
                events = self.apply_action(seat_idx, action, amount)
            except IllegalAction as exc:
                LOGGER.info("Rejected seat=%s action=%s amount=%s reason=%s", seat_idx, action, amount, exc.reason)
                return ActionResult(ok=False, reason=exc.reason, msg=exc.msg, state=self.snapshot())
            return ActionResult(ok=True, events=tuple(events), state=self.snapshot())

    def force_action(self, seat_idx: int, fallback: Optional[Action] = None) -> ActionResult:
        """Timeout entry point: try ``fallback``, then check, call, fold."""
        with self.lock:
            try:
                window = self.legal_actions(seat_idx)
            except IllegalAction as exc:
                return ActionResult(ok=False, reason=exc.reason, msg=exc.msg, state=self.snapshot())
            if seat_idx != self.next_actor():
                return ActionResult(ok=False, reason="OUT_OF_TURN", msg=f"Not seat {seat_idx}'s turn", state=self.snapshot())

            candidates: List[Action] = [fallback] if fallback is not None else []
            candidates.extend([Check(), Call(), Fold()])
            result: Optional[ActionResult] = None
            for candidate in candidates:
                if not window.allows(candidate.type):
                    continue
                result = self.submit_action(seat_idx, candidate)
                if result.ok:
                    LOGGER.info("Forced %s for seat %s", candidate.type.value, seat_idx)
                    return result
            assert result is not None
            return result

    def bot_action(self, seat_idx: int) -> ActionResult:
        with self.lock:
            player = self.seats[seat_idx]
            if player is None or not player.is_bot:
                return ActionResult(ok=False, reason="NOT_A_BOT", msg=f"Seat {seat_idx} is not a bot", state=self.snapshot())
            try:
                window = self.legal_actions(seat_idx)
            except IllegalAction as exc:
                return ActionResult(ok=False, reason=exc.reason, msg=exc.msg, state=self.snapshot())
            threshold = self.config.bot_fold_threshold
            assert threshold is not None
            decision = bot_decision(player.hole_cards, window, threshold, self.bot_rng)
            return self.submit_action(seat_idx, decision)

    def run_bots(self) -> List[Event]:
        """Let bot seats act until a human is up or the hand is over."""
        events: List[Event] = []
        with self.lock:
            while True:
                actor = self.next_actor()
                if actor is None:
                    break
                player = self.seats[actor]
                if player is None or not player.is_bot:
                    break
                result = self.bot_action(actor)
                if not result.ok:
                    raise InvalidSeatState(f"Bot at seat {actor} produced an illegal action: {result.reason}")
                events.extend(result.events)
        return events

    def _active_round(self) -> BettingRound:
        ctx = self.hand
        if ctx is None or ctx.phase in (Phase.SHOWDOWN, Phase.FINISHED) or ctx.betting is None:
            raise IllegalAction("HAND_NOT_ACTIVE", "Hand not in progress")
        return ctx.betting

    # Street progression ----------------------------------------------

    def _progress_safely(self, ctx: HandContext) -> List[Event]:
        try:
            return self._progress(ctx)
        except DeckExhausted as exc:
            return self._abort(ctx, exc)

    def _progress(self, ctx: HandContext) -> List[Event]:
        events: List[Event] = []
        while True:
            if len(self._contenders()) == 1:
                events.extend(self._finish(ctx, award_uncontested(self.table.players(), ctx.pot)))
                return events
            if ctx.betting is not None and not ctx.betting.is_complete():
                return events
            if ctx.phase == Phase.RIVER:
                ctx.phase = Phase.SHOWDOWN
                settlement = resolve_showdown(self.table.players(), ctx.community, ctx.pot)
                events.extend(self._finish(ctx, settlement))
                return events

            events.extend(self._deal_street(ctx))
            for player in self.table.players():
                if player.in_hand:
                    player.reset_for_round()
            ctx.betting = BettingRound(
                self.seats,
                start_seat=(ctx.button + 1) % self.config.seats,
                big_blind=self.config.bb,
            )

    def _deal_street(self, ctx: HandContext) -> List[Event]:
        if ctx.phase == Phase.PRE_FLOP:
            cards = ctx.deck.deal(3)
            ctx.phase = Phase.FLOP
            ctx.community.extend(cards)
            return [{"ev": "FLOP", "cards": cards_to_labels(cards)}]
        if ctx.phase == Phase.FLOP:
            cards = ctx.deck.deal(1)
            ctx.phase = Phase.TURN
            ctx.community.extend(cards)
            return [{"ev": "TURN", "card": cards[0].label}]
        if ctx.phase == Phase.TURN:
            cards = ctx.deck.deal(1)
            ctx.phase = Phase.RIVER
            ctx.community.extend(cards)
            return [{"ev": "RIVER", "card": cards[0].label}]
        raise InvalidSeatState(f"No street follows {ctx.phase.value}")

    def _contenders(self) -> List[int]:
        return [player.seat for player in self.table.players() if player.is_contending]

    def _finish(self, ctx: HandContext, settlement: Settlement) -> List[Event]:
        players = self.table.players()
        for seat_idx, amount in settlement.awards.items():
            player = self.seats[seat_idx]
            assert player is not None
            player.stack += amount
        ctx.revealed = {
            seat_idx: cards_to_labels(self.seats[seat_idx].hole_cards)  # type: ignore[union-attr]
            for seat_idx in settlement.hands
        }
        ctx.payouts = payouts_for(players, settlement.awards)
        ctx.pot = 0
        ctx.phase = Phase.FINISHED
        events = list(settlement.events)
        events.append({"ev": "HAND_END", "hand_id": ctx.hand_id, "payouts": [_payout_dict(p) for p in ctx.payouts]})
        LOGGER.info(
            "Hand %s finished; awards=%s",
            ctx.hand_id,
            {seat_idx: amount for seat_idx, amount in sorted(settlement.awards.items())},
        )
        self._close_hand(ctx)
        return events

    def _abort(self, ctx: HandContext, exc: Exception) -> List[Event]:
        LOGGER.warning("Aborting hand %s: %s", ctx.hand_id, exc)
        refunds = {player.seat: player.total_in_pot for player in self.table.players() if player.total_in_pot > 0}
        for seat_idx, amount in refunds.items():
            self.seats[seat_idx].stack += amount  # type: ignore[union-attr]
        ctx.payouts = payouts_for(self.table.players(), refunds)
        ctx.pot = 0
        ctx.aborted = True
        ctx.phase = Phase.FINISHED
        self._close_hand(ctx)
        return [{"ev": "HAND_ABORTED", "hand_id": ctx.hand_id, "reason": str(exc), "refunds": refunds}]

    def _close_hand(self, ctx: HandContext) -> None:
        ctx.betting = None
        for player in self.table.players():
            leaving = player.leaving
            player.reset_for_hand()
            if leaving:
                self.table.vacate(player.seat)
        for listener in self._payout_listeners:
            try:
                listener(ctx.hand_id, list(ctx.payouts))
            except Exception:
                LOGGER.exception("Payout listener failed for hand %s", ctx.hand_id)

    # Public/Snapshot helpers -----------------------------------------

    def is_hand_complete(self) -> bool:
        return bool(self.hand and self.hand.phase == Phase.FINISHED)

    def snapshot(self, viewer: Optional[int] = None) -> TableSnapshot:
        """Read-only table view. With ``viewer`` set, other seats' hole cards stay hidden."""
        with self.lock:
            ctx = self.hand
            betting = ctx.betting if ctx else None
            players = []
            for idx, seat in enumerate(self.seats):
                if seat is None:
                    continue
                if seat.hole_cards and (viewer is None or viewer == idx):
                    hole = cards_to_labels(seat.hole_cards)
                elif ctx and idx in ctx.revealed:
                    hole = list(ctx.revealed[idx])
                else:
                    hole = []
                players.append(
                    {
                        "seat": idx,
                        "name": seat.name,
                        "stack": seat.stack,
                        "committed": seat.committed,
                        "total_in_pot": seat.total_in_pot,
                        "has_folded": seat.has_folded,
                        "has_acted": seat.has_acted,
                        "is_all_in": seat.is_all_in,
                        "in_hand": seat.in_hand,
                        "is_bot": seat.is_bot,
                        "connected": seat.connected,
                        "hole": hole,
                        "hole_count": len(seat.hole_cards),
                        "is_button": bool(ctx and ctx.button == idx),
                    }
                )
            return TableSnapshot(
                hand_id=ctx.hand_id if ctx else None,
                phase=ctx.phase if ctx else None,
                community=tuple(cards_to_labels(ctx.community)) if ctx else (),
                pot=ctx.pot if ctx else 0,
                current_bet=betting.current_bet if betting else 0,
                last_raise_size=betting.last_raise_size if betting else 0,
                min_raise=betting.min_raise if betting else self.config.bb,
                dealer_seat=ctx.blinds.dealer if ctx else None,
                small_blind_seat=ctx.blinds.small_blind if ctx else None,
                big_blind_seat=ctx.blinds.big_blind if ctx else None,
                active_seat=self.next_actor(),
                active_player_index=betting.active_player_index() if betting and ctx.phase != Phase.FINISHED else None,
                players=tuple(players),
            )

    def lobby_state(self) -> Dict[str, object]:
        return {
            "players": [
                {
                    "seat": seat_idx,
                    "name": seat.name,
                    "connected": seat.connected,
                    "is_bot": seat.is_bot,
                    "stack": seat.stack,
                }
                for seat_idx, seat in enumerate(self.seats)
                if seat is not None
            ]
        }

    def end_hand_payload(self) -> Dict[str, object]:
        if not self.hand:
            raise InvalidSeatState("No hand has been played")
        ctx = self.hand
        return {
            "hand_id": ctx.hand_id,
            "aborted": ctx.aborted,
            "community": cards_to_labels(ctx.community),
            "revealed": {str(seat_idx): hole for seat_idx, hole in ctx.revealed.items()},
            "payouts": [_payout_dict(payout) for payout in ctx.payouts],
            "stacks": [
                {"seat": idx, "stack": seat.stack}
                for idx, seat in enumerate(self.seats)
                if seat is not None
            ],
        }


def _payout_dict(payout: Payout) -> Dict[str, int]:
    return {"seat": payout.seat, "amount": payout.amount, "delta": payout.delta}
