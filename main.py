#!/usr/bin/env python3
import asyncio
import logging
import sys

import aiohttp
from web3 import AsyncHTTPProvider, AsyncWeb3

import constants
from analysis.engine import ArbitrageDecisionEngine
from config import AppConfig, load_config
from exceptions import FeedSubscriptionError
from listener import MempoolListener
from services.balance_gate import BalanceGate
from services.pending_feed import PendingTransactionFeed
from services.trade_executor import TradeExecutor, load_contract_abi
from services.venue_simulator import VenuePriceSimulator


def build_listener(config: AppConfig, web3: AsyncWeb3, session: aiohttp.ClientSession) -> MempoolListener:
    """Wires the shared chain handle, signer and contract into the evaluation pipeline."""
    account = web3.eth.account.from_key(config.private_key)
    contract = web3.eth.contract(
        address=config.contract_address,
        abi=load_contract_abi(config.contract_abi_path),
    )

    executor = TradeExecutor(
        web3,
        account,
        contract,
        gas_pricing=config.gas_pricing,
        entry_point_mode=config.entry_point_mode,
        deadline_window=config.deadline_window,
        priority_fee_divisor=config.priority_fee_divisor,
        wait_for_receipt=config.wait_for_receipt,
        receipt_timeout=config.receipt_timeout,
    )
    engine = ArbitrageDecisionEngine(
        VenuePriceSimulator(web3),
        config.venues,
        profit_threshold=config.profit_threshold,
        gas_estimator=executor.estimate_cost,
        net_gas=config.gas_netting,
    )
    return MempoolListener(
        web3,
        PendingTransactionFeed(session, config.ws_url),
        engine,
        BalanceGate(web3),
        executor,
        contract_address=config.contract_address,
        target_token_in=config.token_in,
        target_token_out=config.token_out,
        max_concurrency=config.max_concurrency,
        dedupe=config.dedupe,
    )


async def run(config: AppConfig) -> int:
    web3 = AsyncWeb3(AsyncHTTPProvider(config.rpc_url))
    if not await web3.is_connected():
        print(f"{constants.C_RED}Could not connect to RPC URL: {config.rpc_url}{constants.C_RESET}")
        return 1

    async with aiohttp.ClientSession(headers={'User-Agent': 'MempoolArbBot/1.0'}) as session:
        listener = build_listener(config, web3, session)
        venues = ", ".join(f"{venue.name} ({venue.fee_numerator}/1000)" for venue in config.venues)
        print(
            f"Watching {constants.C_YELLOW}{config.token_in}/{config.token_out}{constants.C_RESET} "
            f"on {constants.C_BLUE}{venues}{constants.C_RESET}"
        )
        try:
            await listener.run()
        except FeedSubscriptionError as exc:
            print(f"{constants.C_RED}Pending transaction feed failed: {exc}{constants.C_RESET}")
            return 1
        finally:
            listener.log_summary()
    return 0


def main() -> None:
    """The main synchronous entry point for the application."""
    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        exit_code = asyncio.run(run(config))
    except KeyboardInterrupt:
        print("Interrupted; shutting down.")
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
