#!/usr/bin/env python3
import logging

from web3 import AsyncWeb3, Web3

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    }
]


class BalanceGate:
    """Checks that the arbitrage contract holds enough of the input token before a trade."""

    def __init__(self, web3: AsyncWeb3) -> None:
        self.web3 = web3
        self.logger = logging.getLogger(__name__)

    async def get_balance(self, holder_address: str, token_address: str) -> int:
        token = self.web3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ABI)
        return int(await token.functions.balanceOf(Web3.to_checksum_address(holder_address)).call())

    async def has_sufficient_balance(self, contract_address: str, token_address: str, amount: int) -> bool:
        # Fail closed: an unreadable balance blocks execution.
        try:
            balance = await self.get_balance(contract_address, token_address)
        except Exception as exc:
            self.logger.warning(
                "Balance query for %s on token %s failed: %s", contract_address, token_address, exc
            )
            return False
        return balance >= amount
