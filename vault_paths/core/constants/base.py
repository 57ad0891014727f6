GAS_BUFFER_MULTIPLIER = 1.1
SUGGESTED_PRIORITY_FEE_MULTIPLIER = 1.5
SUGGESTED_GAS_PRICE_MULTIPLIER = 1.5
MAX_BASE_FEE_GROWTH_MULTIPLIER = 2

# Timeout constants (seconds)
# Base L2 RPCs can take >2 minutes to return receipts for mined transactions.
DEFAULT_HTTP_TIMEOUT = 30.0  # HTTP client timeout
DEFAULT_TRANSACTION_TIMEOUT = 180  # Transaction receipt timeout (seconds)
DEFAULT_RECEIPT_POLL_INTERVAL = 1.0
DEFAULT_RECEIPT_CONFIRMATIONS = 1

# Morpho GraphQL retry policy
GRAPHQL_MAX_RETRIES = 3
GRAPHQL_RETRY_BASE_DELAY_S = 0.25
GRAPHQL_RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)

MAX_UINT256 = 2**256 - 1
SHARE_DECIMALS = 18

NATIVE_GAS_SYMBOLS = {"eth", "pol", "avax", "bnb", "hype", "xpl"}

# Kept back from the displayed max of a native gas asset.
NATIVE_GAS_RESERVE = "0.001"
