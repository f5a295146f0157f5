"""Ticket-weighted prize draw."""
from __future__ import annotations

import math
from typing import Optional, Sequence

from sim_engine.raffle.models import Prize
from sim_engine.raffle.rng import RandomSource


class DrawSampler:
    """Draws one prize per trial; each prize owns `quantity` consecutive tickets.

    Prize order defines the ticket ranges, so it must be preserved for seeded
    runs to reproduce.
    """

    def __init__(self, prizes: Sequence[Prize], rng: RandomSource):
        self.prizes = tuple(prizes)
        self.rng = rng
        self.total_tickets = sum(p.quantity for p in self.prizes)

    def draw(self) -> Optional[Prize]:
        """Return the winning prize, or None when the ticket pool is empty."""
        if self.total_tickets == 0:
            return None

        ticket = math.floor(self.rng.random() * self.total_tickets)
        cumulative = 0
        for prize in self.prizes:
            if ticket < cumulative + prize.quantity:
                return prize
            cumulative += prize.quantity
        return self.prizes[-1]
