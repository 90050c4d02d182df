"""Constants for anchor ramp integrations."""

# CAIP-2 network identifiers
STELLAR_PUBNET_CAIP2 = "stellar:pubnet"
STELLAR_TESTNET_CAIP2 = "stellar:testnet"

STELLAR_NETWORK_TO_PASSPHRASE = {
    STELLAR_PUBNET_CAIP2: "Public Global Stellar Network ; September 2015",
    STELLAR_TESTNET_CAIP2: "Test SDF Network ; September 2015",
}

STELLAR_NETWORK_TO_HORIZON_URL = {
    STELLAR_PUBNET_CAIP2: "https://horizon.stellar.org",
    STELLAR_TESTNET_CAIP2: "https://horizon-testnet.stellar.org",
}

STELLAR_ACCOUNT_ADDRESS_REGEX = r"^G[A-Z2-7]{55}$"

# Token guard
DEFAULT_TOKEN_EXPIRY_BUFFER_SECONDS = 60

# Polling
DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_POLL_TIMEOUT_SECONDS = 600.0
DEFAULT_SIGNABLE_TIMEOUT_SECONDS = 600.0

# Quotes
MAX_QUOTE_ATTEMPTS = 3

# HTTP
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0

# Amount precision
FIAT_DECIMALS = 2
ASSET_DECIMALS = 7

FIAT_CURRENCIES = frozenset({"MXN", "USD", "BRL", "ARS", "COP", "EUR"})

DEFAULT_COUNTRY = "MX"
