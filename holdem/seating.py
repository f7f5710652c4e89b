from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .models import PlayerSeat

# SeatMap only knows who sits where; chips move in the engine.


@dataclass(frozen=True)
class BlindPositions:
    dealer: int
    small_blind: int
    big_blind: int


class SeatMap:
    def __init__(self, size: int, starting_stack: int) -> None:
        self.size = size
        self.starting_stack = starting_stack
        self.seats: List[Optional[PlayerSeat]] = [None] * size

    def players(self) -> List[PlayerSeat]:
        return [seat for seat in self.seats if seat is not None]

    def take_seat(
        self,
        name: str,
        *,
        is_bot: bool = False,
        seat: Optional[int] = None,
    ) -> PlayerSeat:
        display = name.strip()
        if not display:
            raise ValueError("NAME_REQUIRED")

        if seat is not None:
            if not 0 <= seat < self.size:
                raise ValueError(f"Seat {seat} does not exist")
            if self.seats[seat] is not None:
                raise ValueError(f"Seat {seat} is taken")
            candidates = [seat]
        else:
            candidates = [idx for idx in range(self.size) if self.seats[idx] is None]
        if not candidates:
            raise RuntimeError("Table is full")

        player = PlayerSeat(
            seat=candidates[0],
            name=display,
            stack=self.starting_stack,
            is_bot=is_bot,
        )
        self.seats[player.seat] = player
        return player

    def vacate(self, seat_idx: int) -> Optional[PlayerSeat]:
        player = self.seats[seat_idx]
        self.seats[seat_idx] = None
        return player

    def find(self, name: str) -> Optional[PlayerSeat]:
        key = name.strip().casefold()
        for seat in self.seats:
            if seat and seat.name.casefold() == key:
                return seat
        return None

    def occupied(self) -> List[int]:
        """Seats that can be dealt in, ascending by seat index."""
        return [seat.seat for seat in self.seats if seat and seat.stack > 0]

    def next_occupied(self, start: int, occupied: List[int]) -> int:
        if not occupied:
            raise RuntimeError("No occupied seats")
        for step in range(1, self.size + 1):
            idx = (start + step) % self.size
            if idx in occupied:
                return idx
        raise RuntimeError("No occupied seats")

    def rotate(self, previous_dealer: Optional[int]) -> BlindPositions:
        occupied = self.occupied()
        if len(occupied) < 2:
            raise RuntimeError("Not enough active players to start a hand")

        if previous_dealer is None:
            dealer = occupied[0]
        else:
            # An emptied dealer seat is not in ``occupied``, so the search from
            # it already lands on the next occupied seat.
            dealer = self.next_occupied(previous_dealer, occupied)

        if len(occupied) == 2:
            small_blind = dealer
        else:
            small_blind = self.next_occupied(dealer, occupied)
        big_blind = self.next_occupied(small_blind, occupied)
        return BlindPositions(dealer=dealer, small_blind=small_blind, big_blind=big_blind)
