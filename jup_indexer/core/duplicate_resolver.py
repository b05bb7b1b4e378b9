"""
Duplicate Resolver

A nested route call inside one transaction is matched twice by the
instruction scan and yields two SolTrades with the same id, each holding
one leg from a different vantage point. The pair is merged: SOL delta from
the first record, token delta negated from the second.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Dict, List, Tuple

from ..models.trade import SolTrade

logger = logging.getLogger(__name__)


@dataclass
class DuplicateReport:
    merged_ids: List[str] = field(default_factory=list)
    oversized_groups: Dict[str, int] = field(default_factory=dict)

    @property
    def merged(self) -> int:
        return len(self.merged_ids)


def merge_pair(base: SolTrade, supplement: SolTrade) -> SolTrade:
    return replace(base, sol_delta=base.sol_delta, token_delta=-supplement.token_delta)


def resolve_duplicates(sol_trades: List[SolTrade]) -> Tuple[List[SolTrade], DuplicateReport]:
    """
    Collapse SolTrades sharing an id into one record per id.

    Unique records keep their relative order. Merged records are appended
    after them in order of first appearance. For groups larger than two the
    first record is the base and the last one the supplement; the records in
    between are dropped and the group is reported.

    Returns:
        (resolved trades, report)
    """
    report = DuplicateReport()
    counts = Counter(trade.id for trade in sol_trades)
    duplicate_ids = [trade_id for trade_id, n in counts.items() if n > 1]

    if not duplicate_ids:
        return list(sol_trades), report

    logger.info(f"Duplicates: {len(duplicate_ids)} of {len(sol_trades)}")

    groups: Dict[str, List[SolTrade]] = {trade_id: [] for trade_id in duplicate_ids}
    resolved: List[SolTrade] = []
    for trade in sol_trades:
        if trade.id in groups:
            groups[trade.id].append(trade)
        else:
            resolved.append(trade)

    for trade_id, group in groups.items():
        if len(group) > 2:
            logger.warning(
                f"Signature {trade_id[:16]} matched {len(group)} times, "
                f"merging first and last only"
            )
            report.oversized_groups[trade_id] = len(group)
        resolved.append(merge_pair(group[0], group[-1]))
        report.merged_ids.append(trade_id)

    return resolved, report
