"""
Application constants.

Centralized defaults for the referral network. Runtime values come from
settings; these are the fallbacks observed in production.
"""

from decimal import Decimal

# ========================================================================
# REFERRAL GRAPH
# ========================================================================

# Number of ancestor edges materialized per member
DEFAULT_MAX_DEPTH = 5

# Upper bound for Member.generation
DEFAULT_GENERATION_CAP = 100

# Commission rate per generation distance, in percent
DEFAULT_COMMISSION_RATES: dict[int, Decimal] = {
    1: Decimal("10.0"),  # direct sponsor
    2: Decimal("5.0"),
    3: Decimal("2.0"),
    4: Decimal("1.0"),
    5: Decimal("0.5"),
}

# ========================================================================
# CODES
# ========================================================================

# URL-safe, unambiguous when read aloud or typed
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

DEFAULT_REFERRAL_CODE_LENGTH = 8
DEFAULT_LINK_CODE_LENGTH = 10
DEFAULT_CODE_GENERATION_MAX_ATTEMPTS = 5

# ========================================================================
# MONEY
# ========================================================================

DEFAULT_CURRENCY = "USD"
DEFAULT_CURRENCY_PRECISION: dict[str, int] = {DEFAULT_CURRENCY: 2}

# Scale and upper bound of DECIMAL(18, 8) columns
MONEY_SCALE = Decimal("0.00000001")
MAX_MONEY_AMOUNT = Decimal("9999999999.99999999")

# ========================================================================
# TRANSACTIONS & DELIVERY
# ========================================================================

DEFAULT_TRANSACTION_TIMEOUT_SECONDS = 10.0

# Per-subscriber notification queue
DEFAULT_NOTIFICATION_QUEUE_SIZE = 100
DEFAULT_NOTIFICATION_CHANNEL = "refnet:notifications"

# Dramatiq retry policy for transient failures
EVENT_MAX_RETRIES = 3
EVENT_RETRY_MIN_BACKOFF_MS = 1000  # 1 second
EVENT_RETRY_MAX_BACKOFF_MS = 60000  # 1 minute
EVENT_TIME_LIMIT_MS = 60000
