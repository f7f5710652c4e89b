from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from .models import (
    Action,
    ActionType,
    ActionWindow,
    Call,
    Check,
    Fold,
    IllegalAction,
    PlayerSeat,
    RaiseTo,
)

# One BettingRound per street. The action order is fixed when the round
# opens; a cursor walks it until every player still able to act has acted
# and matched the current bet.


def commit_chips(player: PlayerSeat, amount: int) -> int:
    amount = min(amount, player.stack)
    player.stack -= amount
    player.committed += amount
    player.total_in_pot += amount
    return amount


def rotation_from(seats: Sequence[Optional[PlayerSeat]], start: int) -> List[int]:
    """Seat indices still in the hand, in table order beginning at ``start``."""
    ordered = []
    size = len(seats)
    for step in range(size):
        idx = (start + step) % size
        seat = seats[idx]
        if seat and seat.is_contending:
            ordered.append(idx)
    return ordered


class BettingRound:
    def __init__(
        self,
        seats: Sequence[Optional[PlayerSeat]],
        start_seat: int,
        big_blind: int,
        *,
        current_bet: int = 0,
    ) -> None:
        self.seats = seats
        self.big_blind = big_blind
        self.current_bet = current_bet
        self.last_raise_size = 0
        self.collected = 0
        self.order: List[int] = rotation_from(seats, start_seat)
        self.cursor = 0
        self._seek(from_current=True)

    # State queries -----------------------------------------------------

    @property
    def min_raise(self) -> int:
        return max(self.last_raise_size, self.big_blind)

    @property
    def actor(self) -> Optional[int]:
        if self.is_complete() or self.cursor >= len(self.order):
            return None
        return self.order[self.cursor]

    def contenders(self) -> List[int]:
        return [idx for idx in self.order if self._player(idx).is_contending]

    def active_player_index(self) -> Optional[int]:
        actor = self.actor
        if actor is None:
            return None
        return self.contenders().index(actor)

    def is_complete(self) -> bool:
        contenders = [self._player(idx) for idx in self.contenders()]
        if len(contenders) <= 1:
            return True
        actionable = [player for player in contenders if player.stack > 0]
        if not any(self._is_pending(player) for player in actionable):
            return True
        # Everyone else is all-in: a lone player who owes nothing has nobody to bet against.
        return len(actionable) == 1 and actionable[0].committed >= self.current_bet

    def window(self, seat_idx: int) -> ActionWindow:
        player = self._player(seat_idx)
        if not player.can_act:
            raise IllegalAction("NOT_IN_HAND", f"Seat {seat_idx} cannot act")

        legal = [ActionType.FOLD]
        to_call = max(self.current_bet - player.committed, 0)
        if to_call == 0:
            legal.append(ActionType.CHECK)
        else:
            legal.append(ActionType.CALL)

        min_raise_to: Optional[int] = None
        max_raise_to: Optional[int] = None
        all_in_to = player.stack + player.committed
        # Only a full raise reopens the action for players who already acted.
        if all_in_to > self.current_bet and not player.has_acted:
            max_raise_to = all_in_to
            min_raise_to = min(self.current_bet + self.min_raise, all_in_to)
            legal.append(ActionType.RAISE_TO)

        return ActionWindow(
            seat=seat_idx,
            legal=tuple(legal),
            to_call=min(to_call, player.stack),
            min_raise_to=min_raise_to,
            max_raise_to=max_raise_to,
        )

    # Transitions -------------------------------------------------------

    def apply(self, seat_idx: int, action: Action) -> List[Dict[str, object]]:
        player = self._player(seat_idx)
        if not player.can_act:
            raise IllegalAction("NOT_IN_HAND", f"Seat {seat_idx} is not in the hand")
        if seat_idx != self.actor:
            raise IllegalAction("OUT_OF_TURN", f"Not seat {seat_idx}'s turn")

        events: List[Dict[str, object]] = []
        if isinstance(action, Fold):
            player.has_folded = True
            events.append({"ev": "FOLD", "seat": seat_idx})
        elif isinstance(action, Check):
            if self.current_bet > player.committed:
                raise IllegalAction("CANNOT_CHECK", "Cannot check when facing a bet")
            events.append({"ev": "CHECK", "seat": seat_idx})
        elif isinstance(action, Call):
            owed = self.current_bet - player.committed
            if owed <= 0:
                raise IllegalAction("NOTHING_TO_CALL", "Nothing to call")
            paid = self._commit(player, owed)
            events.append({"ev": "CALL", "seat": seat_idx, "amount": paid, "all_in": player.stack == 0})
        elif isinstance(action, RaiseTo):
            events.append(self._raise(player, action.amount))
        else:
            raise IllegalAction("UNKNOWN_ACTION", f"Unsupported action {action!r}")

        player.has_acted = True
        self._seek()
        return events

    def fold_out_of_turn(self, seat_idx: int) -> Dict[str, object]:
        player = self._player(seat_idx)
        player.has_folded = True
        player.has_acted = True
        # The leaver's bet stays in the pot but no longer sets the price.
        top = max((self._player(idx).committed for idx in self.contenders()), default=0)
        if top < self.current_bet:
            self.current_bet = top
            self.last_raise_size = 0
        self._seek(from_current=True)
        return {"ev": "FOLD", "seat": seat_idx, "left": True}

    def _raise(self, player: PlayerSeat, amount: int) -> Dict[str, object]:
        if player.has_acted:
            raise IllegalAction("RAISE_NOT_REOPENED", "A short all-in raise does not reopen the betting")
        all_in_to = player.stack + player.committed
        if amount > all_in_to:
            raise IllegalAction("RAISE_EXCEEDS_STACK", f"Raise to {amount} exceeds stack ({all_in_to})")
        if amount <= self.current_bet:
            raise IllegalAction("RAISE_TOO_SMALL", f"Raise must exceed current bet {self.current_bet}")
        raise_size = amount - self.current_bet
        full_raise = raise_size >= self.min_raise
        if not full_raise and amount != all_in_to:
            raise IllegalAction(
                "RAISE_TOO_SMALL",
                f"Raise by {raise_size} is below the minimum of {self.min_raise}",
            )

        paid = self._commit(player, amount - player.committed)
        self.current_bet = amount
        if full_raise:
            self.last_raise_size = raise_size
            for idx in self.order:
                other = self._player(idx)
                if idx != player.seat and other.can_act:
                    other.has_acted = False
        return {
            "ev": "RAISE",
            "seat": player.seat,
            "to": amount,
            "amount": paid,
            "all_in": player.stack == 0,
        }

    def _commit(self, player: PlayerSeat, amount: int) -> int:
        paid = commit_chips(player, amount)
        self.collected += paid
        return paid

    def _seek(self, from_current: bool = False) -> None:
        """Move the cursor to the next player who still owes an action."""
        if not self.order:
            return
        first = 0 if from_current else 1
        size = len(self.order)
        for step in range(first, size + first):
            idx = (self.cursor + step) % size
            player = self._player(self.order[idx])
            if player.can_act and self._is_pending(player):
                self.cursor = idx
                return

    def _is_pending(self, player: PlayerSeat) -> bool:
        return not player.has_acted or player.committed < self.current_bet

    def _player(self, seat_idx: int) -> PlayerSeat:
        player = self.seats[seat_idx]
        if player is None:
            raise IllegalAction("NOT_IN_HAND", f"Seat {seat_idx} is empty")
        return player
