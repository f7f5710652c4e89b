from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from .cards import Card, cards_to_labels
from .evaluator import EvaluatedHand, best_hands, describe, evaluate
from .models import InvalidSeatState, Payout, PlayerSeat


@dataclass
class Settlement:
    awards: Dict[int, int] = field(default_factory=dict)
    hands: Dict[int, EvaluatedHand] = field(default_factory=dict)
    events: List[Dict[str, object]] = field(default_factory=list)

    def credit(self, seat_idx: int, amount: int) -> None:
        self.awards[seat_idx] = self.awards.get(seat_idx, 0) + amount

    @property
    def total(self) -> int:
        return sum(self.awards.values())


def split_pot(amount: int, winners: Sequence[int]) -> Dict[int, int]:
    """Even split; the odd chips all go to the lowest seat index."""
    if not winners:
        raise InvalidSeatState("Cannot split a pot with no winners")
    ordered = sorted(winners)
    share, remainder = divmod(amount, len(ordered))
    shares = {seat_idx: share for seat_idx in ordered}
    shares[ordered[0]] += remainder
    return shares


def build_side_pots(players: Sequence[PlayerSeat]) -> List[Tuple[int, List[int]]]:
    """Layer contributions into (amount, eligible seats) pots, lowest level first.

    Folded chips stay in the layers they reached; a layer nobody live reached
    is folded into the pot below it, and layers with the same eligible seats
    are one pot.
    """
    remaining: Dict[int, int] = {
        player.seat: player.total_in_pot for player in players if player.total_in_pot > 0
    }
    live = {player.seat for player in players if player.is_contending}

    pots: List[Tuple[int, List[int]]] = []
    carried = 0
    while True:
        active = [seat_idx for seat_idx, amount in remaining.items() if amount > 0]
        if not active:
            break
        level = min(remaining[seat_idx] for seat_idx in active)
        layer = 0
        for seat_idx in active:
            layer += level
            remaining[seat_idx] -= level
        contenders = sorted(seat_idx for seat_idx in active if seat_idx in live)
        if not contenders:
            if pots:
                amount, eligible = pots[-1]
                pots[-1] = (amount + layer, eligible)
            else:
                carried += layer
            continue
        if pots and pots[-1][1] == contenders:
            amount, eligible = pots[-1]
            pots[-1] = (amount + layer + carried, eligible)
        else:
            pots.append((layer + carried, contenders))
        carried = 0
    return pots


def award_uncontested(players: Sequence[PlayerSeat], pot: int) -> Settlement:
    contenders = [player for player in players if player.is_contending]
    if len(contenders) != 1:
        raise InvalidSeatState(f"Uncontested award needs one player, found {len(contenders)}")
    winner = contenders[0]
    settlement = Settlement()
    if pot > 0:
        settlement.credit(winner.seat, pot)
        settlement.events.append({"ev": "POT_AWARD", "seat": winner.seat, "amount": pot, "pot": 0})
    return settlement


def resolve_showdown(players: Sequence[PlayerSeat], community: Sequence[Card], pot: int) -> Settlement:
    contenders = [player for player in players if player.is_contending]
    if not contenders:
        raise InvalidSeatState("Showdown requested with no players left in the hand")
    if len(contenders) == 1:
        return award_uncontested(players, pot)

    settlement = Settlement()
    board = cards_to_labels(community)
    for player in contenders:
        hand = evaluate(list(player.hole_cards) + list(community))
        settlement.hands[player.seat] = hand
        settlement.events.append(
            {
                "ev": "SHOWDOWN",
                "seat": player.seat,
                "hand": cards_to_labels(player.hole_cards),
                "board": board,
                "rank": describe(hand),
                "label": hand.label,
            }
        )

    for pot_idx, (amount, eligible) in enumerate(build_side_pots(players)):
        winners = best_hands({seat_idx: settlement.hands[seat_idx] for seat_idx in eligible})
        for seat_idx, share in split_pot(amount, winners).items():
            settlement.credit(seat_idx, share)
            settlement.events.append({"ev": "POT_AWARD", "seat": seat_idx, "amount": share, "pot": pot_idx})

    if settlement.total != pot:
        raise InvalidSeatState(f"Payouts {settlement.total} do not match pot {pot}")
    return settlement


def payouts_for(players: Sequence[PlayerSeat], awards: Dict[int, int]) -> List[Payout]:
    payouts = []
    for player in players:
        if not player.in_hand:
            continue
        amount = awards.get(player.seat, 0)
        payouts.append(Payout(seat=player.seat, amount=amount, delta=amount - player.total_in_pot))
    return payouts
