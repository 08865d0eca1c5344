#!/usr/bin/env python3
from typing import Dict, List, Union

# --- ANSI Color Codes ---
C_RED = '\033[91m'
C_YELLOW = '\033[93m'
C_BLUE = '\033[94m'
C_RESET = '\033[0m'

# --- Environment Variable Names ---
PRIVATE_KEY_ENV_VAR = 'ARBITRAGE_PRIVATE_KEY'
RPC_URL_ENV_VAR = 'ARBITRAGE_RPC_URL'
WS_URL_ENV_VAR = 'ARBITRAGE_WS_URL'
CONTRACT_ADDRESS_ENV_VAR = 'ARBITRAGE_CONTRACT_ADDRESS'

# --- Well-known Addresses (Ethereum mainnet) ---
ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'
UNISWAP_V2_FACTORY_ADDRESS = '0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f'
SUSHISWAP_FACTORY_ADDRESS = '0xC0AEe478e3658e2610c5F7A4A2E1777cE9e4f2Ac'
WETH_ADDRESS = '0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2'
DAI_ADDRESS = '0x6B175474E89094C44Da98b954EedeAC495271d0F'

# --- Venue Configuration ---
# Fee numerators are per 1000: 997 keeps 99.7% of the input (0.3% fee).
DEFAULT_VENUES: List[Dict[str, Union[str, int, bool, None]]] = [
    {
        'name': 'uniswap',
        'factory_address': UNISWAP_V2_FACTORY_ADDRESS,
        'fee_numerator': 997,
        'generic_flag': True,
        'entry_point': 'arbitrageUniswapToSushiswap',
    },
    {
        'name': 'sushiswap',
        'factory_address': SUSHISWAP_FACTORY_ADDRESS,
        'fee_numerator': 998,
        'generic_flag': False,
        'entry_point': 'arbitrageSushiswapToUniswap',
    },
]
FEE_DENOMINATOR = 1000

# --- Swap Decoding ---
SWAP_EXACT_TOKENS_FOR_TOKENS_SELECTOR = '0x38ed1739'
SWAP_EXACT_TOKENS_FOR_TOKENS_TYPES = ['uint256', 'uint256', 'address[]', 'address', 'uint256']

# --- Execution Defaults ---
PROFIT_THRESHOLD_WEI = 10 ** 15  # 0.001 of an 18-decimal token
DEADLINE_WINDOW_SECONDS = 300
PRIORITY_FEE_DIVISOR = 10
RECEIPT_TIMEOUT_SECONDS = 120
MAX_CONCURRENT_EVALUATIONS = 64
GAS_PRICING_MODES = ('legacy', 'eip1559')
ENTRY_POINT_MODES = ('generic', 'venue')
GENERIC_ENTRY_POINT = 'startArbitrage'

# --- Feed ---
FEED_SUBSCRIBE_TIMEOUT = 10.0
FEED_HEARTBEAT_SECONDS = 30.0
