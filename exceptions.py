#!/usr/bin/env python3
"""Error taxonomy shared by the decoder, simulator, engine and executor."""


class ArbitrageError(Exception):
    """Base class for every error raised by the arbitrage pipeline."""


class DecodeError(ArbitrageError):
    """Call data is not a decodable two-hop swapExactTokensForTokens call."""


class ConfigurationError(ArbitrageError):
    pass


class FeedSubscriptionError(ArbitrageError):
    """The pending-transaction feed could not be established or was lost."""


# --- Venue errors ---

class VenueError(ArbitrageError):
    """A venue cannot be priced for the requested pair."""


class PoolNotFound(VenueError):
    pass


class InsufficientLiquidity(VenueError):
    pass


class VenueQueryError(VenueError):
    """The factory or pool contract call itself failed."""


# --- Swap math errors ---

class SwapMathError(ArbitrageError, ArithmeticError):
    """Invalid numeric precondition or a uint256 overflow / zero division."""


class ZeroReserves(SwapMathError):
    pass


class ZeroInput(SwapMathError):
    pass


class InvalidFeeRate(SwapMathError):
    pass


class Uint256Overflow(SwapMathError):
    pass


class DivisionByZero(SwapMathError):
    pass


# --- Execution errors ---

class ExecutionError(ArbitrageError):
    """An execution stage failed; the opportunity is abandoned."""


class GasEstimationError(ExecutionError):
    pass


class SigningError(ExecutionError):
    pass


class BroadcastError(ExecutionError):
    pass
