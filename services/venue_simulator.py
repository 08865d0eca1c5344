#!/usr/bin/env python3
from typing import Tuple

from web3 import AsyncWeb3, Web3

from analysis.models import Venue, VenueQuote
from constants import ZERO_ADDRESS
from exceptions import InsufficientLiquidity, PoolNotFound, VenueQueryError

FACTORY_ABI = [
    {
        "constant": True,
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
        ],
        "name": "getPair",
        "outputs": [{"name": "pair", "type": "address"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    }
]

PAIR_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "getReserves",
        "outputs": [
            {"name": "_reserve0", "type": "uint112"},
            {"name": "_reserve1", "type": "uint112"},
            {"name": "_blockTimestampLast", "type": "uint32"},
        ],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    }
]


def sort_tokens(token_a: str, token_b: str) -> Tuple[str, str]:
    """Orders a pair the way the factory stores it: lower address first."""
    if _address_value(token_a) < _address_value(token_b):
        return token_a, token_b
    return token_b, token_a


def _address_value(address: str) -> int:
    return int(address, 16)


class VenuePriceSimulator:
    """Reads Uniswap-V2-style factory and pair contracts to quote a trade on a venue."""

    def __init__(self, web3: AsyncWeb3) -> None:
        self.web3 = web3

    async def get_pool_address(self, factory_address: str, token_a: str, token_b: str) -> str:
        token0, token1 = sort_tokens(token_a, token_b)
        factory = self.web3.eth.contract(
            address=Web3.to_checksum_address(factory_address), abi=FACTORY_ABI
        )
        try:
            pair_address = await factory.functions.getPair(
                Web3.to_checksum_address(token0), Web3.to_checksum_address(token1)
            ).call()
        except Exception as exc:
            raise VenueQueryError(
                f"Failed to query pair address for tokens {token0} and {token1} from factory {factory_address}: {exc}"
            ) from exc

        if not pair_address or int(pair_address, 16) == int(ZERO_ADDRESS, 16):
            raise PoolNotFound(
                f"No pool found for tokens {token0} and {token1} on factory {factory_address}"
            )
        return Web3.to_checksum_address(pair_address)

    async def get_reserves(self, pool_address: str) -> Tuple[int, int]:
        pool = self.web3.eth.contract(address=pool_address, abi=PAIR_ABI)
        try:
            reserve0, reserve1, _timestamp_last = await pool.functions.getReserves().call()
        except Exception as exc:
            raise VenueQueryError(f"Failed to read reserves of pool {pool_address}: {exc}") from exc
        return int(reserve0), int(reserve1)

    async def quote(self, venue: Venue, token_in: str, token_out: str) -> VenueQuote:
        pool_address = await self.get_pool_address(venue.factory_address, token_in, token_out)
        reserve0, reserve1 = await self.get_reserves(pool_address)

        if _address_value(token_in) < _address_value(token_out):
            reserve_in, reserve_out = reserve0, reserve1
        else:
            reserve_in, reserve_out = reserve1, reserve0

        if reserve_in == 0 or reserve_out == 0:
            raise InsufficientLiquidity(
                f"Insufficient liquidity in {venue.name} pool {pool_address}"
            )

        return VenueQuote(
            venue=venue,
            pool_address=pool_address,
            reserve_in=reserve_in,
            reserve_out=reserve_out,
        )
