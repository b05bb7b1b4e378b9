"""
Trade Models

Trade is the normalized output of a route decoder. SolTrade, TokenTrade
and JupSignature are the persisted record shapes.

Amounts stay Python ints (exact) in every model. `to_row()` is the only
place they are narrowed for storage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..constants import (
    DEFAULT_BUCKET,
    FLOAT_EXACT_LIMIT,
    ROUTE_DISC,
    SHARED_ACCOUNTS_ROUTE_DISC,
)

logger = logging.getLogger(__name__)


class RouteKind(str, Enum):
    ROUTE = "route"
    SHARED_ACCOUNTS_ROUTE = "sharedAccountsRoute"

    @property
    def discriminator(self) -> bytes:
        return _DISCRIMINATORS[self]

    @classmethod
    def from_discriminator(cls, d8: bytes) -> Optional[RouteKind]:
        for kind, disc in _DISCRIMINATORS.items():
            if disc == d8:
                return kind
        return None


_DISCRIMINATORS = {
    RouteKind.ROUTE: ROUTE_DISC,
    RouteKind.SHARED_ACCOUNTS_ROUTE: SHARED_ACCOUNTS_ROUTE_DISC,
}


def narrow_amount(value: Optional[int], field_name: str = "amount") -> Optional[float]:
    """
    Convert an exact base-unit amount to the float stored in the database.

    Values beyond 2**53 lose precision; that is logged rather than hidden.
    """
    if value is None:
        return None
    if abs(value) > FLOAT_EXACT_LIMIT:
        logger.warning(f"Lossy narrowing of {field_name}={value} to float")
    return float(value)


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


@dataclass
class Trade:
    """
    A reconstructed swap before classification.

    Attributes:
        kind: Route decoder that produced it
        signature: First transaction signature ("" when missing)
        timestamp: Block time
        trader: User transfer authority of the swap
        mint_spent: Mint that left the trader ("" when unresolved)
        amount_spent: Base units spent
        mint_got: Mint the trader received
        amount_got: Base units received
        fee: Transaction fee in lamports
    """
    kind: RouteKind
    signature: str
    timestamp: datetime
    trader: str
    mint_spent: str
    amount_spent: int
    mint_got: str
    amount_got: int
    fee: int

    @property
    def is_degenerate(self) -> bool:
        return self.mint_spent == self.mint_got

    @property
    def has_unresolved_mint(self) -> bool:
        return not self.mint_spent or not self.mint_got

    def __str__(self) -> str:
        return (
            f"Trade({self.kind.value} {self.signature[:16]}... "
            f"{self.amount_spent} {self.mint_spent[:8]} -> {self.amount_got} {self.mint_got[:8]})"
        )


@dataclass
class SolTrade:
    """Swap with SOL on one side. Negative delta is the spent leg."""
    id: str
    bucket: int
    trader: str
    mint: str
    timestamp: datetime
    token_delta: int
    sol_delta: int
    fee: int
    created_at: Optional[datetime] = None

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "bucket": self.bucket,
            "trader": self.trader,
            "mint": self.mint,
            "timestamp": _iso(self.timestamp),
            "token_delta": narrow_amount(self.token_delta, "token_delta"),
            "sol_delta": narrow_amount(self.sol_delta, "sol_delta"),
            "fee": self.fee,
            "created_at": _iso(self.created_at),
        }


@dataclass
class TokenTrade:
    """Token-to-token swap, both legs as unsigned magnitudes"""
    id: str
    bucket: int
    trader: str
    timestamp: datetime
    mint_spent: str
    amount_spent: int
    mint_got: str
    amount_got: int
    fee: int

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "signature": self.id,
            "bucket": self.bucket,
            "trader": self.trader,
            "timestamp": _iso(self.timestamp),
            "mint_spent": self.mint_spent,
            "amount_spent": narrow_amount(self.amount_spent, "amount_spent"),
            "mint_got": self.mint_got,
            "amount_got": narrow_amount(self.amount_got, "amount_got"),
            "fee": self.fee,
        }


@dataclass
class JupSignature:
    """Ledger entry marking a transaction as scanned"""
    id: str
    timestamp: datetime
    bucket: int = DEFAULT_BUCKET
    processed: bool = False
    is_trade_extracted: Optional[bool] = None
    error_message: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": _iso(self.timestamp),
            "bucket": self.bucket,
            "processed": self.processed,
            "is_trade_extracted": self.is_trade_extracted,
            "error_message": self.error_message,
        }
