#!/usr/bin/env python3
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from analysis.amm_math import trade_output
from analysis.models import ArbitrageOpportunity, Venue, VenueQuote
from constants import PROFIT_THRESHOLD_WEI

GasEstimator = Callable[[Venue, str, str, int], Awaitable[int]]


def select_opportunity(
    outputs: Dict[Venue, int],
    gas_cost: int,
    profit_threshold: int,
) -> Optional[ArbitrageOpportunity]:
    """
    Picks the venue paying the most for the trade and nets the gas cost out of
    the gap to the worst venue. Returns None unless the net profit strictly
    exceeds profit_threshold; equal outputs are never an opportunity.
    """
    if len(outputs) < 2:
        return None

    preferred = max(outputs, key=lambda venue: outputs[venue])
    best = outputs[preferred]
    worst = min(outputs.values())
    if best == worst:
        return None

    gross_profit = best - worst
    net_profit = gross_profit - gas_cost
    if net_profit <= profit_threshold:
        return None

    return ArbitrageOpportunity(
        preferred_venue=preferred,
        gross_profit=gross_profit,
        gas_cost=gas_cost,
        net_profit=net_profit,
        venue_outputs={venue.name: amount for venue, amount in outputs.items()},
    )


class ArbitrageDecisionEngine:
    """Prices one observed trade on every configured venue and decides whether to act."""

    def __init__(
        self,
        simulator,
        venues: Sequence[Venue],
        *,
        profit_threshold: int = PROFIT_THRESHOLD_WEI,
        gas_estimator: Optional[GasEstimator] = None,
        net_gas: bool = True,
    ) -> None:
        if len(venues) < 2:
            raise ValueError("At least two venues are required to compare prices.")
        if net_gas and gas_estimator is None:
            raise ValueError("Gas netting requires a gas estimator.")
        self.simulator = simulator
        self.venues: List[Venue] = list(venues)
        self.profit_threshold = profit_threshold
        self.gas_estimator = gas_estimator
        self.net_gas = net_gas
        self.logger = logging.getLogger(__name__)

    async def quote_outputs(self, token_in: str, token_out: str, amount_in: int) -> Dict[Venue, int]:
        """Trade output per venue; any venue failing to quote aborts the whole evaluation."""
        quotes: List[VenueQuote] = await asyncio.gather(
            *(self.simulator.quote(venue, token_in, token_out) for venue in self.venues)
        )
        return {
            quote.venue: trade_output(
                quote.reserve_in, quote.reserve_out, amount_in, quote.venue.fee_numerator
            )
            for quote in quotes
        }

    async def evaluate(self, token_in: str, token_out: str, amount_in: int) -> Optional[ArbitrageOpportunity]:
        outputs = await self.quote_outputs(token_in, token_out, amount_in)

        gross_only = select_opportunity(outputs, 0, self.profit_threshold)
        if gross_only is None:
            self.logger.debug(
                "No price discrepancy above threshold for %s -> %s: %s",
                token_in,
                token_out,
                {venue.name: amount for venue, amount in outputs.items()},
            )
            return None
        if not self.net_gas:
            return gross_only

        gas_cost = await self.gas_estimator(gross_only.preferred_venue, token_in, token_out, amount_in)
        opportunity = select_opportunity(outputs, gas_cost, self.profit_threshold)
        if opportunity is None:
            self.logger.debug(
                "Discrepancy of %s on %s does not cover gas cost %s",
                gross_only.gross_profit,
                gross_only.preferred_venue.name,
                gas_cost,
            )
        return opportunity
