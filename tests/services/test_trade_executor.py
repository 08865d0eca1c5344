import json

import pytest
from eth_abi import decode
from eth_account import Account
from hexbytes import HexBytes
from unittest.mock import AsyncMock, MagicMock, patch
from web3 import Web3
from web3.exceptions import TimeExhausted

from analysis.models import ArbitrageOpportunity, ExecutionState, Venue
from constants import DAI_ADDRESS, WETH_ADDRESS
from exceptions import BroadcastError, ConfigurationError, GasEstimationError, SigningError
from services.trade_executor import ARBITRAGE_CONTRACT_ABI, TradeExecutor, load_contract_abi

CONTRACT_ADDRESS = '0x2222222222222222222222222222222222222222'
PRIVATE_KEY = '0x' + '11' * 32
TX_HASH = HexBytes('0x' + 'ab' * 32)
NOW = 1_700_000_000
GWEI = 10 ** 9

UNISWAP = Venue('uniswap', '0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f', 997, True, 'arbitrageUniswapToSushiswap')
SUSHISWAP = Venue('sushiswap', '0xC0AEe478e3658e2610c5F7A4A2E1777cE9e4f2Ac', 998, False, None)


async def _resolved(value):
    return value


class FakeEth:
    """Async eth namespace stand-in; gas_price and chain_id are awaitable properties like AsyncEth."""

    def __init__(self, gas_price=50 * GWEI, base_fee=100 * GWEI, gas_estimate=200_000):
        self._gas_price = gas_price
        self.estimate_gas = AsyncMock(return_value=gas_estimate)
        self.get_block = AsyncMock(return_value={'baseFeePerGas': base_fee})
        self.get_transaction_count = AsyncMock(return_value=7)
        self.send_raw_transaction = AsyncMock(return_value=TX_HASH)
        self.wait_for_transaction_receipt = AsyncMock(return_value={'status': 1, 'gasUsed': 180_000})

    @property
    def gas_price(self):
        return _resolved(self._gas_price)

    @property
    def chain_id(self):
        return _resolved(1)


def _selector(signature):
    return '0x' + Web3.keccak(text=signature)[:4].hex().removeprefix('0x')


def _make_executor(eth=None, account=None, **kwargs):
    web3 = MagicMock()
    web3.eth = eth or FakeEth()
    contract = Web3().eth.contract(address=CONTRACT_ADDRESS, abi=ARBITRAGE_CONTRACT_ABI)
    return TradeExecutor(web3, account or Account.from_key(PRIVATE_KEY), contract, **kwargs)


def _opportunity(venue=UNISWAP):
    return ArbitrageOpportunity(preferred_venue=venue, gross_profit=5 * 10 ** 16, gas_cost=10 ** 16, net_profit=4 * 10 ** 16)


def test_generic_call_data_carries_venue_flag():
    executor = _make_executor()

    data = executor.build_call_data(SUSHISWAP, WETH_ADDRESS, DAI_ADDRESS, 10 ** 18, NOW + 300)

    assert data.startswith(_selector('startArbitrage(address,uint256,address,uint256,bool)'))
    token_in, amount_in, token_out, deadline, flag = decode(
        ['address', 'uint256', 'address', 'uint256', 'bool'], bytes.fromhex(data[10:])
    )
    assert Web3.to_checksum_address(token_in) == WETH_ADDRESS
    assert Web3.to_checksum_address(token_out) == DAI_ADDRESS
    assert (amount_in, deadline, flag) == (10 ** 18, NOW + 300, False)


def test_venue_call_data_uses_venue_entry_point():
    executor = _make_executor(entry_point_mode='venue')

    data = executor.build_call_data(UNISWAP, WETH_ADDRESS, DAI_ADDRESS, 10 ** 18, NOW + 300)

    assert data.startswith(_selector('arbitrageUniswapToSushiswap(address,uint256,address,uint256)'))


def test_venue_mode_without_entry_point_is_a_configuration_error():
    executor = _make_executor(entry_point_mode='venue')

    with pytest.raises(ConfigurationError):
        executor.build_call_data(SUSHISWAP, WETH_ADDRESS, DAI_ADDRESS, 10 ** 18, NOW + 300)


def test_unknown_gas_pricing_mode_rejected():
    with pytest.raises(ConfigurationError):
        _make_executor(gas_pricing='flat')


@pytest.mark.asyncio
async def test_legacy_fee_fields_use_chain_gas_price():
    executor = _make_executor()

    assert await executor.fee_fields() == {'gasPrice': 50 * GWEI}


@pytest.mark.asyncio
async def test_fee_market_fields_derive_priority_from_base_fee():
    executor = _make_executor(gas_pricing='eip1559')

    fees = await executor.fee_fields()

    assert fees == {
        'type': 2,
        'maxPriorityFeePerGas': 10 * GWEI,
        'maxFeePerGas': 110 * GWEI,
    }


@pytest.mark.asyncio
async def test_fee_market_without_base_fee_fails_estimation():
    eth = FakeEth()
    eth.get_block = AsyncMock(return_value={})
    executor = _make_executor(eth=eth, gas_pricing='eip1559')

    with pytest.raises(GasEstimationError):
        await executor.fee_fields()


@pytest.mark.asyncio
async def test_estimate_cost_multiplies_gas_by_price():
    executor = _make_executor()

    assert await executor.estimate_cost(UNISWAP, WETH_ADDRESS, DAI_ADDRESS, 10 ** 18) == 200_000 * 50 * GWEI


@pytest.mark.asyncio
async def test_estimate_cost_uses_max_fee_under_fee_market():
    executor = _make_executor(gas_pricing='eip1559')

    assert await executor.estimate_cost(UNISWAP, WETH_ADDRESS, DAI_ADDRESS, 10 ** 18) == 200_000 * 110 * GWEI


@pytest.mark.asyncio
@patch('services.trade_executor.time.time', return_value=NOW)
async def test_execute_signs_broadcasts_and_waits_for_receipt(_mock_time):
    eth = FakeEth()
    executor = _make_executor(eth=eth)

    result = await executor.execute(_opportunity(), WETH_ADDRESS, DAI_ADDRESS, 10 ** 18)

    assert result.state == ExecutionState.MINED
    assert result.tx_hash == Web3.to_hex(TX_HASH)
    assert result.gas_used == 180_000
    assert result.reason is None

    estimated_tx = eth.estimate_gas.await_args.args[0]
    assert estimated_tx['nonce'] == 7
    assert estimated_tx['chainId'] == 1
    assert estimated_tx['gasPrice'] == 50 * GWEI
    assert estimated_tx['to'] == CONTRACT_ADDRESS
    _, _, _, deadline, flag = decode(
        ['address', 'uint256', 'address', 'uint256', 'bool'], bytes.fromhex(estimated_tx['data'][10:])
    )
    assert deadline == NOW + 300
    assert flag is True

    raw_tx = eth.send_raw_transaction.await_args.args[0]
    assert len(raw_tx) > 0
    eth.wait_for_transaction_receipt.assert_awaited_once()


@pytest.mark.asyncio
async def test_execute_reports_reverted_receipt():
    eth = FakeEth()
    eth.wait_for_transaction_receipt = AsyncMock(return_value={'status': 0, 'gasUsed': 90_000})
    executor = _make_executor(eth=eth)

    result = await executor.execute(_opportunity(), WETH_ADDRESS, DAI_ADDRESS, 10 ** 18)

    assert result.state == ExecutionState.MINED
    assert result.reason == 'reverted'


@pytest.mark.asyncio
async def test_execute_with_fee_market_pricing_signs_type_2_transaction():
    eth = FakeEth()
    executor = _make_executor(eth=eth, gas_pricing='eip1559')

    result = await executor.execute(_opportunity(), WETH_ADDRESS, DAI_ADDRESS, 10 ** 18)

    assert result.state == ExecutionState.MINED
    raw_tx = eth.send_raw_transaction.await_args.args[0]
    assert bytes(raw_tx)[0] == 2


@pytest.mark.asyncio
async def test_execute_abandons_on_gas_estimation_failure():
    eth = FakeEth()
    eth.estimate_gas = AsyncMock(side_effect=ValueError("execution reverted"))
    executor = _make_executor(eth=eth)

    with pytest.raises(GasEstimationError):
        await executor.execute(_opportunity(), WETH_ADDRESS, DAI_ADDRESS, 10 ** 18)
    eth.send_raw_transaction.assert_not_awaited()


@pytest.mark.asyncio
async def test_execute_wraps_signer_failure():
    account = MagicMock()
    account.address = '0x4444444444444444444444444444444444444444'
    account.sign_transaction.side_effect = RuntimeError("hardware wallet disconnected")
    eth = FakeEth()
    executor = _make_executor(eth=eth, account=account)

    with pytest.raises(SigningError):
        await executor.execute(_opportunity(), WETH_ADDRESS, DAI_ADDRESS, 10 ** 18)
    eth.send_raw_transaction.assert_not_awaited()


@pytest.mark.asyncio
async def test_execute_wraps_broadcast_failure():
    eth = FakeEth()
    eth.send_raw_transaction = AsyncMock(side_effect=ValueError("nonce too low"))
    executor = _make_executor(eth=eth)

    with pytest.raises(BroadcastError):
        await executor.execute(_opportunity(), WETH_ADDRESS, DAI_ADDRESS, 10 ** 18)
    eth.wait_for_transaction_receipt.assert_not_awaited()


@pytest.mark.asyncio
async def test_execute_missing_receipt_is_unmined_not_retried():
    eth = FakeEth()
    eth.wait_for_transaction_receipt = AsyncMock(side_effect=TimeExhausted("not mined"))
    executor = _make_executor(eth=eth, receipt_timeout=1)

    result = await executor.execute(_opportunity(), WETH_ADDRESS, DAI_ADDRESS, 10 ** 18)

    assert result.state == ExecutionState.UNMINED
    assert result.reason == 'receipt_timeout'
    eth.send_raw_transaction.assert_awaited_once()


@pytest.mark.asyncio
async def test_execute_without_waiting_returns_after_broadcast():
    eth = FakeEth()
    executor = _make_executor(eth=eth, wait_for_receipt=False)

    result = await executor.execute(_opportunity(), WETH_ADDRESS, DAI_ADDRESS, 10 ** 18)

    assert result.state == ExecutionState.BROADCAST
    eth.wait_for_transaction_receipt.assert_not_awaited()


def test_load_contract_abi_defaults_and_artifacts(tmp_path):
    assert load_contract_abi() is ARBITRAGE_CONTRACT_ABI

    artifact = tmp_path / "Arbitrage.json"
    artifact.write_text(json.dumps({"contractName": "Arbitrage", "abi": ARBITRAGE_CONTRACT_ABI[:1]}))
    assert load_contract_abi(artifact) == ARBITRAGE_CONTRACT_ABI[:1]

    bare = tmp_path / "abi.json"
    bare.write_text(json.dumps(ARBITRAGE_CONTRACT_ABI))
    assert len(load_contract_abi(str(bare))) == len(ARBITRAGE_CONTRACT_ABI)

    broken = tmp_path / "broken.json"
    broken.write_text(json.dumps({"bytecode": "0x"}))
    with pytest.raises(ConfigurationError):
        load_contract_abi(broken)
