"""
Batch Processor

Walks the instructions of a block batch in arrival order, decodes the
Jupiter swaps, classifies the resulting trades and reconciles duplicate
SolTrades before the batch is handed to storage.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from ..constants import DEFAULT_BUCKET, JUPITER_PROGRAM_ID
from ..models.chain import Block, Instruction
from ..models.trade import JupSignature, RouteKind, SolTrade, TokenTrade
from .duplicate_resolver import resolve_duplicates
from .route_decoders import decoder_for
from .trade_classifier import classify_trade

logger = logging.getLogger(__name__)


@dataclass
class BatchStats:
    blocks: int = 0
    instructions_seen: int = 0
    swaps_matched: int = 0
    route_swaps: int = 0
    shared_accounts_route_swaps: int = 0
    unknown_discriminators: int = 0
    discarded_same_mint: int = 0
    unresolved_mints: int = 0
    duplicates_merged: int = 0
    oversized_duplicate_groups: int = 0

    def to_dict(self) -> dict:
        return dict(self.__dict__)


@dataclass
class BatchResult:
    sol_trades: List[SolTrade] = field(default_factory=list)
    token_trades: List[TokenTrade] = field(default_factory=list)
    jup_signatures: List[JupSignature] = field(default_factory=list)
    stats: BatchStats = field(default_factory=BatchStats)
    last_slot: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return not (self.sol_trades or self.token_trades or self.jup_signatures)


def is_aggregator_call(ins: Instruction) -> bool:
    """Committed Jupiter instruction that invoked more than one inner instruction"""
    return (
        ins.program_id == JUPITER_PROGRAM_ID
        and ins.is_committed
        and len(ins.inner) > 1
    )


def is_candidate(ins: Instruction) -> bool:
    return is_aggregator_call(ins) and RouteKind.from_discriminator(ins.d8) is not None


class BatchProcessor:
    """
    Turns block batches into SolTrade / TokenTrade / JupSignature collections.

    Holds no state between batches; every `process()` call owns its result.

    Usage:
        processor = BatchProcessor(bucket=1)
        result = processor.process(blocks)
        db.save_batch(result)
    """

    def __init__(self, bucket: int = DEFAULT_BUCKET, clock=None):
        self.bucket = bucket
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def process(self, blocks: Iterable[Block]) -> BatchResult:
        result = BatchResult()
        stats = result.stats
        created_at = self._clock()

        for block in blocks:
            stats.blocks += 1
            result.last_slot = block.slot
            block_time = datetime.fromtimestamp(block.timestamp, tz=timezone.utc)

            for ins in block.instructions:
                stats.instructions_seen += 1
                if not is_aggregator_call(ins):
                    continue

                kind = RouteKind.from_discriminator(ins.d8)
                if kind is None:
                    stats.unknown_discriminators += 1
                    logger.debug(f"Skipping Jupiter instruction with tag {ins.d8.hex()}")
                    continue

                self._process_swap(ins, kind, block_time, created_at, result)

        result.sol_trades, report = resolve_duplicates(result.sol_trades)
        stats.duplicates_merged = report.merged
        stats.oversized_duplicate_groups = len(report.oversized_groups)

        if stats.unresolved_mints:
            logger.warning(f"{stats.unresolved_mints} trades with unresolved mint in batch")

        return result

    def _process_swap(
        self,
        ins: Instruction,
        kind: RouteKind,
        block_time: datetime,
        created_at: datetime,
        result: BatchResult,
    ) -> None:
        stats = result.stats
        stats.swaps_matched += 1
        if kind is RouteKind.ROUTE:
            stats.route_swaps += 1
        elif kind is RouteKind.SHARED_ACCOUNTS_ROUTE:
            stats.shared_accounts_route_swaps += 1

        trade = decoder_for(kind).decode(ins, block_time)

        if trade.has_unresolved_mint:
            stats.unresolved_mints += 1

        classification = classify_trade(trade, bucket=self.bucket, created_at=created_at)
        if classification is None:
            stats.discarded_same_mint += 1
            return

        if classification.is_sol_trade:
            result.sol_trades.append(classification.record)
        else:
            result.token_trades.append(classification.record)
        result.jup_signatures.append(classification.signature)
