"""
Chain Data Model

Already-decoded blocks, transactions and instructions as handed over by
the block source. Instructions link back to their transaction and down
to the instructions they invoked.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class TokenBalance:
    """Pre/post token balance of one token account inside a transaction"""
    account: str
    pre_mint: str = ""
    post_mint: str = ""
    pre_owner: str = ""
    post_owner: str = ""
    pre_amount: int = 0
    post_amount: int = 0


@dataclass(eq=False)
class Instruction:
    program_id: str
    accounts: List[str]
    data: bytes
    is_committed: bool = True
    transaction: Optional[Transaction] = None
    inner: List[Instruction] = field(default_factory=list)
    index: int = 0  # Position in Transaction.instructions

    @property
    def d8(self) -> bytes:
        """Anchor discriminator (first 8 bytes of data)"""
        return self.data[:8]

    @property
    def d1(self) -> Optional[int]:
        """One-byte tag used by the SPL token program"""
        return self.data[0] if self.data else None

    def get_transaction(self) -> Transaction:
        if self.transaction is None:
            raise ValueError("Instruction is not attached to a transaction")
        return self.transaction

    def __repr__(self) -> str:
        return (
            f"Instruction(program_id={self.program_id[:8]}..., "
            f"index={self.index}, inner={len(self.inner)})"
        )


@dataclass(eq=False)
class Transaction:
    """
    A transaction with every instruction it executed.

    `instructions` is flat and in execution order: each outer instruction
    is followed by the instructions it invoked.
    """
    signatures: List[str]
    fee: int = 0
    instructions: List[Instruction] = field(default_factory=list)
    token_balances: List[TokenBalance] = field(default_factory=list)
    err: Optional[object] = None

    @property
    def signature(self) -> str:
        return self.signatures[0] if self.signatures else ""

    def add_instruction(self, ins: Instruction, parent: Optional[Instruction] = None) -> Instruction:
        ins.transaction = self
        ins.index = len(self.instructions)
        self.instructions.append(ins)
        if parent is not None:
            parent.inner.append(ins)
        return ins

    def find_balance(self, account: str) -> Optional[TokenBalance]:
        for balance in self.token_balances:
            if balance.account == account:
                return balance
        return None

    def __repr__(self) -> str:
        return f"Transaction(signature={self.signature[:16]}, instructions={len(self.instructions)})"


@dataclass
class Block:
    slot: int
    timestamp: int  # Unix seconds
    height: Optional[int] = None
    transactions: List[Transaction] = field(default_factory=list)

    @property
    def instructions(self) -> List[Instruction]:
        """Every instruction of every transaction, outer and inner, in order"""
        return [ins for tx in self.transactions for ins in tx.instructions]
