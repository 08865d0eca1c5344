"""Builds, signs and broadcasts arbitrage contract calls for priced opportunities."""
from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
from web3.exceptions import TimeExhausted

from analysis.models import ArbitrageOpportunity, ExecutionState, TradeResult, Venue
from constants import (
    DEADLINE_WINDOW_SECONDS,
    ENTRY_POINT_MODES,
    GAS_PRICING_MODES,
    GENERIC_ENTRY_POINT,
    PRIORITY_FEE_DIVISOR,
    RECEIPT_TIMEOUT_SECONDS,
)
from exceptions import (
    BroadcastError,
    ConfigurationError,
    ExecutionError,
    GasEstimationError,
    SigningError,
)


def _venue_entry_point_abi(name: str) -> Dict[str, Any]:
    return {
        "inputs": [
            {"name": "tokenIn", "type": "address"},
            {"name": "amountIn", "type": "uint256"},
            {"name": "tokenOut", "type": "address"},
            {"name": "deadline", "type": "uint256"},
        ],
        "name": name,
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    }


ARBITRAGE_CONTRACT_ABI: List[Dict[str, Any]] = [
    {
        "inputs": [
            {"name": "tokenIn", "type": "address"},
            {"name": "amountIn", "type": "uint256"},
            {"name": "tokenOut", "type": "address"},
            {"name": "deadline", "type": "uint256"},
            {"name": "buyOnUniswap", "type": "bool"},
        ],
        "name": GENERIC_ENTRY_POINT,
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    _venue_entry_point_abi("arbitrageUniswapToSushiswap"),
    _venue_entry_point_abi("arbitrageSushiswapToUniswap"),
]


def load_contract_abi(path: Optional[str | Path] = None) -> List[Dict[str, Any]]:
    """Loads the arbitrage contract ABI from a JSON file, or returns the built-in one.

    Accepts either a bare ABI list or a compiler artifact with an "abi" key.
    """
    if path is None:
        return ARBITRAGE_CONTRACT_ABI
    with open(path, encoding="utf-8") as handle:
        payload = json.load(handle)
    if isinstance(payload, dict):
        payload = payload.get("abi")
    if not isinstance(payload, list):
        raise ConfigurationError(f"No ABI list found in {path}")
    return payload


class TradeExecutor:
    """Turns an ArbitrageOpportunity into a broadcast transaction against the arbitrage contract."""

    def __init__(
        self,
        web3: AsyncWeb3,
        account: LocalAccount,
        contract,
        *,
        gas_pricing: str = "legacy",
        entry_point_mode: str = "generic",
        deadline_window: int = DEADLINE_WINDOW_SECONDS,
        priority_fee_divisor: int = PRIORITY_FEE_DIVISOR,
        wait_for_receipt: bool = True,
        receipt_timeout: float = RECEIPT_TIMEOUT_SECONDS,
    ) -> None:
        if gas_pricing not in GAS_PRICING_MODES:
            raise ConfigurationError(f"Unknown gas pricing mode: {gas_pricing}")
        if entry_point_mode not in ENTRY_POINT_MODES:
            raise ConfigurationError(f"Unknown entry point mode: {entry_point_mode}")
        if priority_fee_divisor <= 0:
            raise ConfigurationError("Priority fee divisor must be positive.")

        self.web3 = web3
        self.account = account
        self.contract = contract
        self.gas_pricing = gas_pricing
        self.entry_point_mode = entry_point_mode
        self.deadline_window = deadline_window
        self.priority_fee_divisor = priority_fee_divisor
        self.wait_for_receipt = wait_for_receipt
        self.receipt_timeout = receipt_timeout
        self.logger = logging.getLogger(__name__)

    def deadline(self) -> int:
        return int(time.time()) + self.deadline_window

    def build_call_data(self, venue: Venue, token_in: str, token_out: str, amount_in: int, deadline: int) -> str:
        token_in = Web3.to_checksum_address(token_in)
        token_out = Web3.to_checksum_address(token_out)
        if self.entry_point_mode == "generic":
            return self.contract.encode_abi(
                GENERIC_ENTRY_POINT,
                args=[token_in, amount_in, token_out, deadline, venue.generic_flag],
            )
        if not venue.entry_point:
            raise ConfigurationError(f"Venue {venue.name} has no contract entry point configured.")
        return self.contract.encode_abi(
            venue.entry_point,
            args=[token_in, amount_in, token_out, deadline],
        )

    async def fee_fields(self) -> Dict[str, int]:
        if self.gas_pricing == "legacy":
            return {"gasPrice": int(await self.web3.eth.gas_price)}

        block = await self.web3.eth.get_block("latest")
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            raise GasEstimationError("Latest block carries no base fee; fee-market pricing unavailable.")
        base_fee = int(base_fee)
        priority_fee = base_fee // self.priority_fee_divisor
        return {
            "type": 2,
            "maxPriorityFeePerGas": priority_fee,
            "maxFeePerGas": base_fee + priority_fee,
        }

    async def prepare_transaction(
        self,
        venue: Venue,
        token_in: str,
        token_out: str,
        amount_in: int,
        deadline: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Encodes the call and fills fee fields; nonce, chain id and gas are left to the caller."""
        data = self.build_call_data(
            venue, token_in, token_out, amount_in, deadline if deadline is not None else self.deadline()
        )
        try:
            fees = await self.fee_fields()
        except GasEstimationError:
            raise
        except Exception as exc:
            raise GasEstimationError(f"Failed to fetch gas pricing: {exc}") from exc

        tx: Dict[str, Any] = {
            "from": self.account.address,
            "to": self.contract.address,
            "data": data,
            "value": 0,
        }
        tx.update(fees)
        return tx

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        try:
            return int(await self.web3.eth.estimate_gas(tx))
        except Exception as exc:
            raise GasEstimationError(f"Failed to get gas estimate: {exc}") from exc

    async def estimate_cost(self, venue: Venue, token_in: str, token_out: str, amount_in: int) -> int:
        """Gas cost in wei of executing the arbitrage on venue at current prices."""
        tx = await self.prepare_transaction(venue, token_in, token_out, amount_in)
        gas = await self.estimate_gas(tx)
        return gas * _unit_gas_price(tx)

    async def execute(
        self,
        opportunity: ArbitrageOpportunity,
        token_in: str,
        token_out: str,
        amount_in: int,
    ) -> TradeResult:
        venue = opportunity.preferred_venue
        tx = await self.prepare_transaction(venue, token_in, token_out, amount_in, self.deadline())
        try:
            tx["nonce"] = int(await self.web3.eth.get_transaction_count(self.account.address, "pending"))
            tx["chainId"] = int(await self.web3.eth.chain_id)
        except Exception as exc:
            raise ExecutionError(f"Failed to read nonce or chain id: {exc}") from exc

        tx["gas"] = await self.estimate_gas(tx)
        self.logger.info(
            "Gas estimated for %s arbitrage: %s units (nonce %s)", venue.name, tx["gas"], tx["nonce"]
        )

        try:
            signed = self.account.sign_transaction(tx)
        except Exception as exc:
            raise SigningError(f"Failed to sign transaction: {exc}") from exc

        try:
            tx_hash = await self.web3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            raise BroadcastError(f"Failed to send transaction: {exc}") from exc

        tx_hash_hex = Web3.to_hex(tx_hash)
        self.logger.info("Arbitrage transaction broadcast: %s", tx_hash_hex)
        if not self.wait_for_receipt:
            return TradeResult(state=ExecutionState.BROADCAST, tx_hash=tx_hash_hex)

        try:
            receipt = await self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except TimeExhausted:
            self.logger.error("Failed to mine transaction %s within %ss", tx_hash_hex, self.receipt_timeout)
            return TradeResult(
                state=ExecutionState.UNMINED,
                tx_hash=tx_hash_hex,
                reason="receipt_timeout",
            )

        status = receipt.get("status")
        self.logger.info("Transaction mined: %s (status %s)", tx_hash_hex, status)
        return TradeResult(
            state=ExecutionState.MINED,
            tx_hash=tx_hash_hex,
            receipt=receipt,
            gas_used=receipt.get("gasUsed"),
            reason="reverted" if status == 0 else None,
        )


def _unit_gas_price(tx: Dict[str, Any]) -> int:
    if "maxFeePerGas" in tx:
        return int(tx["maxFeePerGas"])
    return int(tx["gasPrice"])
