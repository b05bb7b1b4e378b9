"""
getBlock Parser

Converts a JSON-RPC `getBlock` result (encoding="json") into the chain
model the trade engine consumes.

Inner instructions are attached to the outer instruction they belong to
and nested by `stackHeight`; every instruction, outer and inner, is also
kept in the transaction's flat list in execution order.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import base58

from ..exceptions import InstructionDecodeError
from ..models.chain import Block, Instruction, TokenBalance, Transaction


def build_account_keys(tx: dict) -> List[str]:
    message = tx["transaction"]["message"]
    account_keys = [
        key if isinstance(key, str) else key["pubkey"]
        for key in message.get("accountKeys") or []
    ]

    loaded = (tx.get("meta") or {}).get("loadedAddresses") or {}
    account_keys.extend(loaded.get("writable", []))
    account_keys.extend(loaded.get("readonly", []))
    return account_keys


def _resolve(keys: List[str], index: int, signature: str) -> str:
    if not isinstance(index, int) or not 0 <= index < len(keys):
        raise InstructionDecodeError(
            "Account index out of range", signature=signature, index=index
        )
    return keys[index]


def _make_instruction(raw: dict, keys: List[str], committed: bool, signature: str) -> Instruction:
    try:
        data = base58.b58decode(raw.get("data") or "")
    except ValueError as e:
        raise InstructionDecodeError(f"Bad base58 instruction data: {e}", signature=signature)

    return Instruction(
        program_id=_resolve(keys, raw["programIdIndex"], signature),
        accounts=[_resolve(keys, i, signature) for i in raw.get("accounts") or []],
        data=data,
        is_committed=committed,
    )


def _amount(entry: dict, signature: str) -> int:
    raw = (entry.get("uiTokenAmount") or {}).get("amount") or 0
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InstructionDecodeError(
            "Bad token balance amount", signature=signature, amount=raw
        )


def parse_token_balances(meta: dict, keys: List[str], signature: str = "") -> List[TokenBalance]:
    balances: Dict[int, TokenBalance] = {}

    for pre in meta.get("preTokenBalances") or []:
        idx = pre.get("accountIndex")
        account = _resolve(keys, idx, signature)
        balance = balances.setdefault(idx, TokenBalance(account=account))
        balance.pre_mint = pre.get("mint") or ""
        balance.pre_owner = pre.get("owner") or ""
        balance.pre_amount = _amount(pre, signature)

    for post in meta.get("postTokenBalances") or []:
        idx = post.get("accountIndex")
        account = _resolve(keys, idx, signature)
        balance = balances.setdefault(idx, TokenBalance(account=account))
        balance.post_mint = post.get("mint") or ""
        balance.post_owner = post.get("owner") or ""
        balance.post_amount = _amount(post, signature)

    return [balances[idx] for idx in sorted(balances)]


def parse_transaction(tx: dict) -> Transaction:
    message = tx["transaction"]["message"]
    meta = tx.get("meta")
    keys = build_account_keys(tx)
    signatures = list(tx["transaction"].get("signatures") or [])
    signature = signatures[0] if signatures else ""

    # Without meta the outcome is unknown, so nothing counts as committed
    committed = meta is not None and meta.get("err") is None
    meta = meta or {}

    transaction = Transaction(
        signatures=signatures,
        fee=int(meta.get("fee") or 0),
        token_balances=parse_token_balances(meta, keys, signature),
        err=meta.get("err"),
    )

    inner_by_index: Dict[int, List[dict]] = {
        group["index"]: group.get("instructions") or []
        for group in meta.get("innerInstructions") or []
    }

    for position, raw in enumerate(message.get("instructions") or []):
        outer = transaction.add_instruction(
            _make_instruction(raw, keys, committed, signature)
        )

        # stack[k] is the open instruction at stack height k + 1
        stack: List[Instruction] = [outer]
        for raw_inner in inner_by_index.get(position, []):
            height = raw_inner.get("stackHeight") or 2
            while len(stack) >= height and len(stack) > 1:
                stack.pop()
            transaction.add_instruction(
                _make_instruction(raw_inner, keys, committed, signature),
                parent=stack[-1],
            )
            stack.append(transaction.instructions[-1])

    return transaction


def parse_block(slot: int, payload: Dict[str, Any]) -> Block:
    """
    Build a Block from a getBlock result.

    Args:
        slot: Slot the block was requested for
        payload: `result` object of the getBlock response

    Raises:
        InstructionDecodeError: malformed transaction, or transactions in a
            block without `blockTime`
    """
    raw_transactions = payload.get("transactions") or []
    block_time: Optional[int] = payload.get("blockTime")
    if block_time is None and raw_transactions:
        raise InstructionDecodeError("Block has no blockTime", slot=slot)

    transactions = []
    for raw in raw_transactions:
        try:
            transactions.append(parse_transaction(raw))
        except (KeyError, TypeError, AttributeError) as e:
            raise InstructionDecodeError(f"Malformed transaction: {e!r}", slot=slot) from e

    return Block(
        slot=slot,
        timestamp=int(block_time or 0),
        height=payload.get("blockHeight"),
        transactions=transactions,
    )
