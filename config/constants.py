from core.models import SwapDirection

# ✅ POLYGON POS (TEA-FI CAMPAIGN)
DEFAULT_RPC_URL = "https://polygon-bor-rpc.publicnode.com"
DEFAULT_CHAIN_ID = 137
NATIVE_SYMBOL = "POL"

NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"
USDC_ADDRESS = "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359"
USDT_ADDRESS = "0xc2132D05D31c914a87C6611C10748AEb04B58e8F"
WPOL_ADDRESS = "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270"
ROUTER_ADDRESS = "0xEb6132FAF257e9EBCAed78055C5302D81eb948BE"

MAX_UINT256 = 2 ** 256 - 1

# ✅ TEA-FI API
QUOTE_API_URL = "https://api.tea-fi.com/lifi/quote"
TRANSACTION_API_URL = "https://api.tea-fi.com/transaction"
CHECKIN_STATUS_URL = "https://api.tea-fi.com/wallet/check-in/current"
CHECKIN_URL = "https://api.tea-fi.com/wallet/check-in"
ALREADY_CHECKED_IN_MESSAGE = "Already checked in today"

QUOTE_SLIPPAGE = 0.005
QUOTE_EXCHANGE = "okx"

API_HEADERS = {
    'accept': '*/*',
    'content-type': 'application/json',
    'origin': 'https://app.tea-fi.com',
    'referer': 'https://app.tea-fi.com/',
    'connection': 'keep-alive',
    'accept-encoding': 'gzip, deflate, br',
}

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/138.0.0.0 Safari/537.36 OPR/122.0.0.0 (Edition cdf)",
]

# Code reported to the transaction API
DIRECTION_TYPE_SWAP = 0
DIRECTION_TYPE_WRAP = 1
DIRECTION_TYPE_UNWRAP = 2

ROUTER_DIRECTIONS = (
    SwapDirection("USDC", "USDT", USDC_ADDRESS, USDT_ADDRESS, DIRECTION_TYPE_SWAP, decimals=6),
    SwapDirection("USDT", "USDC", USDT_ADDRESS, USDC_ADDRESS, DIRECTION_TYPE_SWAP, decimals=6),
)

WRAP_DIRECTIONS = (
    SwapDirection("POL", "WPOL", NATIVE_TOKEN_ADDRESS, WPOL_ADDRESS, DIRECTION_TYPE_WRAP, decimals=18),
    SwapDirection("WPOL", "POL", WPOL_ADDRESS, NATIVE_TOKEN_ADDRESS, DIRECTION_TYPE_UNWRAP, decimals=18),
)

# Tokens shown in the wallet snapshot: symbol -> (address, decimals)
TRACKED_TOKENS = {
    "USDC": (USDC_ADDRESS, 6),
    "USDT": (USDT_ADDRESS, 6),
    "WPOL": (WPOL_ADDRESS, 18),
}

# ✅ ТАЙМИНГИ (секунды)
CONFIRMATION_TIMEOUT = 120
CONFIRMATION_POLL_INTERVAL = 5
SWAP_DELAY_RANGE = (10, 25)
ACCOUNT_DELAY = 10
DRAIN_CHECK_INTERVAL = 1
AMOUNT_PRECISION = 3
GAS_LIMIT_BUFFER = 1.2
