import hashlib
from solders.pubkey import Pubkey

# ============================================
# PROGRAM IDS
# ============================================
JUPITER_PROGRAM = Pubkey.from_string("JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4")
TOKEN_PROGRAM = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")

# Wrapped SOL, the mint every SOL leg of a swap settles through
SOL_MINT = Pubkey.from_string("So11111111111111111111111111111111111111112")

# String forms for comparing against decoded account lists
JUPITER_PROGRAM_ID = str(JUPITER_PROGRAM)
TOKEN_PROGRAM_ID = str(TOKEN_PROGRAM)
SOL_MINT_ADDRESS = str(SOL_MINT)

# ============================================
# DISCRIMINATORS
# ============================================
def anchor_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]

ROUTE_DISC = anchor_discriminator("route")
SHARED_ACCOUNTS_ROUTE_DISC = anchor_discriminator("shared_accounts_route")

# SPL token instructions are tagged by their first byte
TOKEN_TRANSFER_TAG = 3
TOKEN_TRANSFER_CHECKED_TAG = 12

# ============================================
# RECORD DEFAULTS
# ============================================
DEFAULT_BUCKET = 1

# Largest integer a float64 column holds without rounding
FLOAT_EXACT_LIMIT = 2 ** 53

# Trailer shared by both route payloads:
# u64 in_amount, u64 quoted_out_amount, u16 slippage_bps, u8 platform_fee_bps
ROUTE_TRAILER_FORMAT = "<QQHB"
ROUTE_TRAILER_SIZE = 19

# ============================================
# RPC
# ============================================
DEFAULT_START_SLOT = 240_000_000
RPC_SLOT_SKIPPED = -32007
RPC_BLOCK_NOT_AVAILABLE = -32009
