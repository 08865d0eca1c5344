#!/usr/bin/env python3
import os
import sys
import argparse
from dataclasses import replace
from typing import NamedTuple, Optional, Tuple

from web3 import Web3

import constants
from analysis.models import Venue


class AppConfig(NamedTuple):
    """Typed configuration object."""
    rpc_url: str
    ws_url: str
    contract_address: str
    private_key: str
    token_in: str
    token_out: str
    venues: Tuple[Venue, ...]
    gas_pricing: str
    entry_point_mode: str
    profit_threshold: int
    deadline_window: int
    priority_fee_divisor: int
    max_concurrency: int
    gas_netting: bool
    dedupe: bool
    wait_for_receipt: bool
    receipt_timeout: float
    contract_abi_path: Optional[str]
    log_level: str


def parse_address(value: str) -> str:
    """argparse type: validates an address and returns it checksummed."""
    if not Web3.is_address(value):
        raise argparse.ArgumentTypeError(f"Invalid address: {value}")
    return Web3.to_checksum_address(value)


def parse_venue(value: str) -> Venue:
    """argparse type for NAME:FACTORY:FEE[:ENTRY_POINT], e.g. uniswap:0x5C69...:997."""
    parts = value.split(':')
    if len(parts) not in (3, 4):
        raise argparse.ArgumentTypeError(
            f"Venue must be NAME:FACTORY:FEE[:ENTRY_POINT], got '{value}'"
        )
    name, factory, fee = parts[0], parts[1], parts[2]
    try:
        fee_numerator = int(fee)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Venue fee must be an integer per 1000, got '{fee}'")
    if not 0 < fee_numerator <= constants.FEE_DENOMINATOR:
        raise argparse.ArgumentTypeError(f"Venue fee must be in (0, {constants.FEE_DENOMINATOR}], got {fee_numerator}")
    return Venue(
        name=name,
        factory_address=parse_address(factory),
        fee_numerator=fee_numerator,
        entry_point=parts[3] if len(parts) == 4 and parts[3] else None,
    )


def default_venues() -> Tuple[Venue, ...]:
    return tuple(Venue(**venue) for venue in constants.DEFAULT_VENUES)


def load_config() -> AppConfig:
    """
    Parses command-line arguments and loads environment variables to create a configuration object.
    """
    parser = argparse.ArgumentParser(
        description="Watch the mempool for swaps on a token pair and execute cross-DEX arbitrage.",
        epilog="Example: ./main.py --token-out 0x6B175474E89094C44Da98b954EedeAC495271d0F --gas-pricing eip1559"
    )
    # --- Connection ---
    parser.add_argument('--rpc-url', type=str, default=os.environ.get(constants.RPC_URL_ENV_VAR), help=f'HTTP JSON-RPC endpoint (default: ${constants.RPC_URL_ENV_VAR}).')
    parser.add_argument('--ws-url', type=str, default=os.environ.get(constants.WS_URL_ENV_VAR), help=f'Websocket endpoint for the pending transaction feed (default: ${constants.WS_URL_ENV_VAR}).')
    parser.add_argument('--contract-address', type=parse_address, default=os.environ.get(constants.CONTRACT_ADDRESS_ENV_VAR), help=f'Address of the deployed arbitrage contract (default: ${constants.CONTRACT_ADDRESS_ENV_VAR}).')
    parser.add_argument('--contract-abi', type=str, help='Optional JSON file with the arbitrage contract ABI.')

    # --- Target Pair ---
    parser.add_argument('--token-in', type=parse_address, default=constants.WETH_ADDRESS, help='First token of the watched pair (default: WETH).')
    parser.add_argument('--token-out', type=parse_address, required=True, help='Second token of the watched pair.')

    # --- Pricing & Execution ---
    parser.add_argument('--venue', dest='venues', action='append', type=parse_venue, help='Venue as NAME:FACTORY:FEE[:ENTRY_POINT]; repeat for each venue (default: Uniswap V2 and SushiSwap).')
    parser.add_argument('--gas-pricing', choices=constants.GAS_PRICING_MODES, default='legacy', help='Gas pricing model (default: legacy).')
    parser.add_argument('--entry-point', choices=constants.ENTRY_POINT_MODES, default='generic', help='Call the generic startArbitrage entry point or a venue-specific one (default: generic).')
    parser.add_argument('--profit-threshold', type=int, default=constants.PROFIT_THRESHOLD_WEI, help='Minimum net profit in the smallest token unit (default: 10^15).')
    parser.add_argument('--deadline-window', type=int, default=constants.DEADLINE_WINDOW_SECONDS, help='Seconds until the on-chain deadline (default: 300).')
    parser.add_argument('--priority-fee-divisor', type=int, default=constants.PRIORITY_FEE_DIVISOR, help='Priority fee is base fee divided by this (default: 10).')
    parser.add_argument('--max-concurrency', type=int, default=constants.MAX_CONCURRENT_EVALUATIONS, help='Maximum concurrent evaluations (default: 64).')
    parser.add_argument('--no-gas-netting', action='store_true', help='Compare gross discrepancy against the threshold without subtracting gas.')
    parser.add_argument('--allow-duplicates', action='store_true', help='Allow concurrent executions on the same pair and direction.')
    parser.add_argument('--no-wait-receipt', action='store_true', help='Do not wait for the mined receipt after broadcasting.')
    parser.add_argument('--receipt-timeout', type=float, default=constants.RECEIPT_TIMEOUT_SECONDS, help='Seconds to wait for a receipt (default: 120).')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], default='INFO', help='Logging level (default: INFO).')

    args = parser.parse_args()

    if not args.rpc_url:
        parser.error(f'--rpc-url or {constants.RPC_URL_ENV_VAR} is required.')
    if not args.ws_url:
        parser.error(f'--ws-url or {constants.WS_URL_ENV_VAR} is required.')
    if not args.contract_address:
        parser.error(f'--contract-address or {constants.CONTRACT_ADDRESS_ENV_VAR} is required.')
    if args.token_in == args.token_out:
        parser.error('--token-in and --token-out must differ.')
    if args.max_concurrency <= 0:
        parser.error('--max-concurrency must be positive.')
    if args.priority_fee_divisor <= 0:
        parser.error('--priority-fee-divisor must be positive.')

    venues = default_venues()
    if args.venues:
        if len(args.venues) < 2:
            parser.error('At least two --venue entries are required.')
        # The generic entry point's boolean selects the first configured venue.
        venues = tuple(replace(venue, generic_flag=index == 0) for index, venue in enumerate(args.venues))
    if args.entry_point == 'venue':
        missing = [venue.name for venue in venues if not venue.entry_point]
        if missing:
            parser.error(f"--entry-point venue needs an entry point on every venue; missing for: {', '.join(missing)}")

    private_key = os.environ.get(constants.PRIVATE_KEY_ENV_VAR)
    if not private_key:
        print(f"{constants.C_RED}{constants.PRIVATE_KEY_ENV_VAR} environment variable not set; required to sign arbitrage transactions.{constants.C_RESET}")
        sys.exit(1)

    return AppConfig(
        rpc_url=args.rpc_url,
        ws_url=args.ws_url,
        contract_address=args.contract_address,
        private_key=private_key,
        token_in=args.token_in,
        token_out=args.token_out,
        venues=venues,
        gas_pricing=args.gas_pricing,
        entry_point_mode=args.entry_point,
        profit_threshold=args.profit_threshold,
        deadline_window=args.deadline_window,
        priority_fee_divisor=args.priority_fee_divisor,
        max_concurrency=args.max_concurrency,
        gas_netting=not args.no_gas_netting,
        dedupe=not args.allow_duplicates,
        wait_for_receipt=not args.no_wait_receipt,
        receipt_timeout=args.receipt_timeout,
        contract_abi_path=args.contract_abi,
        log_level=args.log_level,
    )
