#!/usr/bin/env python3
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Venue:
    """A constant-product AMM venue: its pair registry and fee rate."""
    name: str
    factory_address: str
    fee_numerator: int  # per 1000, e.g. 997 for a 0.3% fee
    generic_flag: bool = False
    entry_point: Optional[str] = None


@dataclass(frozen=True)
class DecodedSwap:
    """The first hop of an observed swapExactTokensForTokens call."""
    token_in: str
    token_out: str
    amount_in: int


@dataclass(frozen=True)
class VenueQuote:
    """Pool reserves oriented so that reserve_in belongs to the trade's input token."""
    venue: Venue
    pool_address: str
    reserve_in: int
    reserve_out: int


@dataclass
class ArbitrageOpportunity:
    """A priced discrepancy whose net profit cleared the profitability floor."""
    preferred_venue: Venue
    gross_profit: int
    gas_cost: int
    net_profit: int
    venue_outputs: Dict[str, int] = field(default_factory=dict)


class ExecutionState(str, Enum):
    EVALUATED = 'EVALUATED'
    GAS_ESTIMATED = 'GAS_ESTIMATED'
    SIGNED = 'SIGNED'
    BROADCAST = 'BROADCAST'
    MINED = 'MINED'
    UNMINED = 'UNMINED'


@dataclass
class TradeResult:
    state: ExecutionState
    tx_hash: Optional[str] = None
    receipt: Optional[Any] = None
    gas_used: Optional[int] = None
    reason: Optional[str] = None


class EvaluationOutcome(str, Enum):
    """Terminal result of evaluating one pending transaction."""
    TX_NOT_FOUND = 'TX_NOT_FOUND'
    TX_FETCH_FAILED = 'TX_FETCH_FAILED'
    NOT_A_SWAP = 'NOT_A_SWAP'
    OFF_TARGET = 'OFF_TARGET'
    VENUE_UNAVAILABLE = 'VENUE_UNAVAILABLE'
    MATH_ERROR = 'MATH_ERROR'
    NO_OPPORTUNITY = 'NO_OPPORTUNITY'
    DUPLICATE = 'DUPLICATE'
    INSUFFICIENT_BALANCE = 'INSUFFICIENT_BALANCE'
    MISCONFIGURED = 'MISCONFIGURED'
    EXECUTION_FAILED = 'EXECUTION_FAILED'
    EXECUTED = 'EXECUTED'
    UNMINED = 'UNMINED'
