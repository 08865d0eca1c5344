#!/usr/bin/env python3
"""Decoding of observed router swaps and matching against the target pair."""
from typing import Union

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from web3 import Web3

from analysis.models import DecodedSwap
from constants import (
    SWAP_EXACT_TOKENS_FOR_TOKENS_SELECTOR,
    SWAP_EXACT_TOKENS_FOR_TOKENS_TYPES,
)
from exceptions import DecodeError

_SELECTOR = HexBytes(SWAP_EXACT_TOKENS_FOR_TOKENS_SELECTOR)


def decode_swap(call_data: Union[bytes, str]) -> DecodedSwap:
    """
    Decodes swapExactTokensForTokens(amountIn, amountOutMin, path, to, deadline)
    call data into its first hop.
    """
    try:
        data = HexBytes(call_data)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"Call data is not valid hex: {exc}") from exc

    if len(data) < 4 or data[:4] != _SELECTOR:
        raise DecodeError(f"Unexpected function selector: {data[:4].hex() or 'empty'}")

    try:
        amount_in, _amount_out_min, path, _to, _deadline = decode(
            SWAP_EXACT_TOKENS_FOR_TOKENS_TYPES, bytes(data[4:])
        )
    except (DecodingError, ValueError, OverflowError) as exc:
        raise DecodeError(f"Failed to decode swap arguments: {exc}") from exc

    if len(path) < 2:
        raise DecodeError(f"Swap path has {len(path)} hop(s); at least two are required")

    return DecodedSwap(
        token_in=Web3.to_checksum_address(path[0]),
        token_out=Web3.to_checksum_address(path[1]),
        amount_in=int(amount_in),
    )

def is_target_pair(swap: DecodedSwap, target_token_in: str, target_token_out: str) -> bool:
    """True when the swap trades the target pair in either direction."""
    token_in = swap.token_in.lower()
    token_out = swap.token_out.lower()
    target_in = target_token_in.lower()
    target_out = target_token_out.lower()
    return (token_in == target_in and token_out == target_out) or (
        token_in == target_out and token_out == target_in
    )
