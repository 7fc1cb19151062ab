"""Configuration constants for suberra-deploy."""

# Network identity of the fully local sandbox; stub contracts are deployed there
LOCAL_NETWORK = "localterra"

# Known networks keyed by chain id (the network identity)
NETWORK_CONFIG = {
    "localterra": {
        "lcd_url": "http://localhost:1317",
    },
    "bombay-12": {
        "lcd_url": "https://bombay-lcd.terra.dev",
    },
    "columbus-5": {
        "lcd_url": "https://lcd.terra.dev",
    },
}

# Fee policy: every transaction pays in this denom
FEE_DENOM = "uusd"
DEFAULT_GAS_PRICE = 0.15
DEFAULT_GAS_LIMIT = 5_000_000

# Post-broadcast timing (seconds)
DEFAULT_SETTLE_DELAY = 2.0
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_CONFIRM_TIMEOUT = 60.0
CONFIRM_POLL_INITIAL = 0.5
CONFIRM_POLL_MAX = 8.0

DEFAULT_SIGNER_BINARY = "terrad"
DEFAULT_ARTIFACTS_DIR = "../artifacts"

# Product factory init parameters
PRODUCT_FACTORY_PARAMS = {
    "protocol_fee_bps": 0,
    "min_protocol_fee": "0",
    "min_amount_per_interval": "4000000",  # $4
    "min_unit_interval_hour": 24,
}

# P2P recurring transfers init parameters
P2P_PARAMS = {
    "minimum_interval": 86400,  # 1 day
    "minimum_amount_per_interval": "10000000",  # $10
    "fee_bps": 0,
    "max_fee": "1000000",  # $1
}

# Local aUST stub token
LOCAL_ATERRA_TOKEN = {
    "name": "Local aUST",
    "symbol": "laUST",
    "decimals": 6,
    "initial_balance": "1000000",
}

# Network config document keys for externally provided dependency contracts
ANCHOR_MARKET_KEY = "anchor_market_contract"
ATERRA_TOKEN_KEY = "aterra_token_contract"
