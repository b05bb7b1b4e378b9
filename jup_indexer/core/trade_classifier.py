"""
Trade Classifier

Decides whether a Trade has SOL on one side (SolTrade) or is token to
token (TokenTrade), and emits the JupSignature ledger entry for it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from ..constants import DEFAULT_BUCKET, SOL_MINT_ADDRESS
from ..models.trade import JupSignature, SolTrade, TokenTrade, Trade

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Classification:
    record: Union[SolTrade, TokenTrade]
    signature: JupSignature

    @property
    def is_sol_trade(self) -> bool:
        return isinstance(self.record, SolTrade)


def classify_trade(
    trade: Trade,
    bucket: int = DEFAULT_BUCKET,
    created_at: Optional[datetime] = None,
) -> Optional[Classification]:
    """
    Classify a trade. Pure: same inputs, same records.

    Args:
        trade: Normalized trade from a route decoder
        bucket: Partition tag written on every record
        created_at: Creation time stamped on SolTrade records

    Returns:
        Classification, or None when spent and got mints are the same
    """
    if trade.is_degenerate:
        logger.debug(f"Discarding same-mint trade {trade.signature[:16]} ({trade.mint_spent[:8]})")
        return None

    # SOL going into the swap, or coming out of it
    sol_in = trade.mint_spent == SOL_MINT_ADDRESS
    sol_out = trade.mint_got == SOL_MINT_ADDRESS

    if sol_in or sol_out:
        record = SolTrade(
            id=trade.signature,
            bucket=bucket,
            trader=trade.trader,
            mint=trade.mint_got if sol_in else trade.mint_spent,
            timestamp=trade.timestamp,
            token_delta=trade.amount_got if sol_in else -trade.amount_spent,
            sol_delta=-trade.amount_spent if sol_in else trade.amount_got,
            fee=trade.fee,
            created_at=created_at,
        )
    else:
        record = TokenTrade(
            id=trade.signature,
            bucket=bucket,
            trader=trade.trader,
            timestamp=trade.timestamp,
            mint_spent=trade.mint_spent,
            amount_spent=trade.amount_spent,
            mint_got=trade.mint_got,
            amount_got=trade.amount_got,
            fee=trade.fee,
        )

    signature = JupSignature(
        id=trade.signature,
        timestamp=trade.timestamp,
        bucket=bucket,
        processed=True,
        is_trade_extracted=True,
    )
    return Classification(record=record, signature=signature)
