import argparse
import sys

import pytest

import constants
from config import load_config, parse_venue

CONTRACT_ADDRESS = '0x2222222222222222222222222222222222222222'
PRIVATE_KEY = '0x' + '11' * 32


@pytest.fixture(autouse=True)
def setup_env(monkeypatch):
    monkeypatch.setenv(constants.RPC_URL_ENV_VAR, 'http://localhost:8545')
    monkeypatch.setenv(constants.WS_URL_ENV_VAR, 'ws://localhost:8546')
    monkeypatch.setenv(constants.CONTRACT_ADDRESS_ENV_VAR, CONTRACT_ADDRESS)
    monkeypatch.setenv(constants.PRIVATE_KEY_ENV_VAR, PRIVATE_KEY)


def _set_args(monkeypatch, *args):
    monkeypatch.setattr(sys, 'argv', ['main.py', *args])


def test_defaults_come_from_environment_and_constants(monkeypatch):
    _set_args(monkeypatch, '--token-out', constants.DAI_ADDRESS.lower())

    config = load_config()

    assert config.rpc_url == 'http://localhost:8545'
    assert config.ws_url == 'ws://localhost:8546'
    assert config.contract_address == CONTRACT_ADDRESS
    assert config.private_key == PRIVATE_KEY
    assert config.token_in == constants.WETH_ADDRESS
    assert config.token_out == constants.DAI_ADDRESS
    assert [venue.name for venue in config.venues] == ['uniswap', 'sushiswap']
    assert [venue.fee_numerator for venue in config.venues] == [997, 998]
    assert config.gas_pricing == 'legacy'
    assert config.entry_point_mode == 'generic'
    assert config.profit_threshold == constants.PROFIT_THRESHOLD_WEI
    assert config.gas_netting is True
    assert config.dedupe is True
    assert config.wait_for_receipt is True
    assert config.contract_abi_path is None


def test_flags_override_defaults(monkeypatch):
    _set_args(
        monkeypatch,
        '--token-out', constants.DAI_ADDRESS,
        '--gas-pricing', 'eip1559',
        '--entry-point', 'venue',
        '--profit-threshold', '0',
        '--max-concurrency', '8',
        '--no-gas-netting',
        '--allow-duplicates',
        '--no-wait-receipt',
        '--log-level', 'DEBUG',
    )

    config = load_config()

    assert config.gas_pricing == 'eip1559'
    assert config.entry_point_mode == 'venue'
    assert config.profit_threshold == 0
    assert config.max_concurrency == 8
    assert config.gas_netting is False
    assert config.dedupe is False
    assert config.wait_for_receipt is False
    assert config.log_level == 'DEBUG'


def test_custom_venues_flag_the_first_for_the_generic_entry_point(monkeypatch):
    _set_args(
        monkeypatch,
        '--token-out', constants.DAI_ADDRESS,
        '--venue', 'alpha:0x0000000000000000000000000000000000000001:997:arbAlpha',
        '--venue', 'beta:0x0000000000000000000000000000000000000002:995',
    )

    config = load_config()

    alpha, beta = config.venues
    assert (alpha.name, alpha.fee_numerator, alpha.entry_point, alpha.generic_flag) == ('alpha', 997, 'arbAlpha', True)
    assert (beta.name, beta.fee_numerator, beta.entry_point, beta.generic_flag) == ('beta', 995, None, False)


def test_single_custom_venue_rejected(monkeypatch):
    _set_args(
        monkeypatch,
        '--token-out', constants.DAI_ADDRESS,
        '--venue', 'alpha:0x0000000000000000000000000000000000000001:997',
    )

    with pytest.raises(SystemExit):
        load_config()


def test_identical_tokens_rejected(monkeypatch):
    _set_args(monkeypatch, '--token-out', constants.WETH_ADDRESS)

    with pytest.raises(SystemExit):
        load_config()


def test_missing_rpc_url_rejected(monkeypatch):
    monkeypatch.delenv(constants.RPC_URL_ENV_VAR)
    _set_args(monkeypatch, '--token-out', constants.DAI_ADDRESS)

    with pytest.raises(SystemExit):
        load_config()


def test_missing_private_key_exits(monkeypatch, capsys):
    monkeypatch.delenv(constants.PRIVATE_KEY_ENV_VAR)
    _set_args(monkeypatch, '--token-out', constants.DAI_ADDRESS)

    with pytest.raises(SystemExit) as exc_info:
        load_config()

    assert exc_info.value.code == 1
    assert constants.PRIVATE_KEY_ENV_VAR in capsys.readouterr().out


def test_venue_entry_points_required_in_venue_mode(monkeypatch, capsys):
    _set_args(
        monkeypatch,
        '--token-out', constants.DAI_ADDRESS,
        '--entry-point', 'venue',
        '--venue', 'alpha:0x0000000000000000000000000000000000000001:997:arbAlpha',
        '--venue', 'beta:0x0000000000000000000000000000000000000002:998',
    )

    with pytest.raises(SystemExit) as exc_info:
        load_config()

    assert exc_info.value.code == 2
    assert 'beta' in capsys.readouterr().err


def test_default_venues_carry_entry_points_for_venue_mode(monkeypatch):
    _set_args(monkeypatch, '--token-out', constants.DAI_ADDRESS, '--entry-point', 'venue')

    config = load_config()

    assert [venue.entry_point for venue in config.venues] == [
        'arbitrageUniswapToSushiswap',
        'arbitrageSushiswapToUniswap',
    ]


@pytest.mark.parametrize(
    "value",
    [
        'alpha:0x0000000000000000000000000000000000000001',
        'alpha:not-an-address:997',
        'alpha:0x0000000000000000000000000000000000000001:abc',
        'alpha:0x0000000000000000000000000000000000000001:0',
        'alpha:0x0000000000000000000000000000000000000001:1001',
    ],
)
def test_parse_venue_rejects_malformed_values(value):
    with pytest.raises(argparse.ArgumentTypeError):
        parse_venue(value)
