#!/usr/bin/env python3
"""Constant-product swap math on checked unsigned 256-bit integers.

Python ints never wrap, so every intermediate is compared against the uint256
range explicitly; the results match what the pool contract would compute.
"""
from constants import FEE_DENOMINATOR
from exceptions import (
    DivisionByZero,
    InvalidFeeRate,
    Uint256Overflow,
    ZeroInput,
    ZeroReserves,
)

UINT256_MAX = 2 ** 256 - 1


def _check_uint256(value: int, label: str) -> int:
    if value < 0 or value > UINT256_MAX:
        raise Uint256Overflow(f"{label} out of uint256 range: {value}")
    return value


def checked_add(a: int, b: int) -> int:
    return _check_uint256(a + b, "addition")


def checked_mul(a: int, b: int) -> int:
    return _check_uint256(a * b, "multiplication")


def checked_div(a: int, b: int) -> int:
    if b == 0:
        raise DivisionByZero(f"division of {a} by zero")
    return a // b


def trade_output(reserve_in: int, reserve_out: int, amount_in: int, fee_numerator: int) -> int:
    """Returns the amount a pool with the given reserves pays out for amount_in.

    fee_numerator is per 1000 and must satisfy 0 < fee_numerator <= 1000.
    """
    for label, value in (
        ("reserve_in", reserve_in),
        ("reserve_out", reserve_out),
        ("amount_in", amount_in),
        ("fee_numerator", fee_numerator),
    ):
        _check_uint256(value, label)

    if reserve_in == 0 or reserve_out == 0:
        raise ZeroReserves("Reserves cannot be zero")
    if amount_in == 0:
        raise ZeroInput("Input amount cannot be zero")
    if fee_numerator == 0 or fee_numerator > FEE_DENOMINATOR:
        raise InvalidFeeRate(f"Invalid fee rate: {fee_numerator}/{FEE_DENOMINATOR}")

    amount_in_with_fee = checked_div(checked_mul(amount_in, fee_numerator), FEE_DENOMINATOR)
    numerator = checked_mul(amount_in_with_fee, reserve_out)
    denominator = checked_add(reserve_in, amount_in_with_fee)
    return checked_div(numerator, denominator)
