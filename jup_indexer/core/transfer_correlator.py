"""
Transfer Correlator

Finds the SPL token transfers a swap triggered. Every instruction of the
transaction is scanned, not only the swap's children, because the
transfers can sit next to the swap rather than under it.

Order matters: matches are folded in instruction order and a later match
overwrites an earlier one.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional

from ..constants import (
    TOKEN_PROGRAM_ID,
    TOKEN_TRANSFER_CHECKED_TAG,
    TOKEN_TRANSFER_TAG,
)
from ..models.chain import Transaction
from .abi import decode_transfer, decode_transfer_checked

logger = logging.getLogger(__name__)


class TransferKind(str, Enum):
    TRANSFER = "transfer"
    TRANSFER_CHECKED = "transferChecked"


@dataclass(frozen=True)
class TransferEffect:
    """One token movement. `mint` is "" when it could not be resolved."""
    kind: TransferKind
    amount: int
    source: str
    destination: str
    mint: str

    @property
    def checked(self) -> bool:
        return self.kind is TransferKind.TRANSFER_CHECKED


@dataclass
class Leg:
    """Running state of one side of a swap while transfers are folded in"""
    mint: Optional[str] = None
    amount: Optional[int] = None
    matches: int = 0

    @property
    def found(self) -> bool:
        return self.matches > 0

    def absorb(self, effect: TransferEffect, take_inferred_mint: bool) -> None:
        self.amount = effect.amount
        if effect.checked or take_inferred_mint:
            self.mint = effect.mint
        self.matches += 1


@dataclass
class CorrelatedLegs:
    spent: Leg = field(default_factory=Leg)
    got: Leg = field(default_factory=Leg)


def infer_mint(transaction: Transaction, account: str) -> str:
    """Pre-transfer mint of `account` from the balance records, "" if unknown."""
    balance = transaction.find_balance(account)
    if balance is None or not balance.pre_mint:
        return ""
    return balance.pre_mint


def iter_transfers(transaction: Transaction) -> Iterator[TransferEffect]:
    """Yield every transfer / transferChecked of the transaction, in order."""
    for inst in transaction.instructions:
        if inst.program_id != TOKEN_PROGRAM_ID:
            continue

        if inst.d1 == TOKEN_TRANSFER_CHECKED_TAG:
            t = decode_transfer_checked(inst)
            yield TransferEffect(
                kind=TransferKind.TRANSFER_CHECKED,
                amount=t.amount,
                source=t.source,
                destination=t.destination,
                mint=t.mint,
            )

        elif inst.d1 == TOKEN_TRANSFER_TAG:
            t = decode_transfer(inst)
            yield TransferEffect(
                kind=TransferKind.TRANSFER,
                amount=t.amount,
                source=t.source,
                destination=t.destination,
                mint=infer_mint(transaction, t.destination),
            )


def correlate_legs(
    transaction: Transaction,
    source_account: str,
    destination_account: str,
) -> CorrelatedLegs:
    """
    Fold the transaction's transfers into a spent leg and a got leg.

    A transfer out of `source_account` updates the spent leg, including its
    mint (inferred for plain transfers). A transfer into
    `destination_account` updates the got leg; only a checked transfer
    carries a mint for it.
    """
    legs = CorrelatedLegs()
    for effect in iter_transfers(transaction):
        if effect.source == source_account:
            legs.spent.absorb(effect, take_inferred_mint=True)
        if effect.destination == destination_account:
            legs.got.absorb(effect, take_inferred_mint=False)
    return legs


def first_checked_transfer(transaction: Transaction) -> Optional[TransferEffect]:
    for effect in iter_transfers(transaction):
        if effect.checked:
            return effect
    return None
