"""
Pytest fixtures for jup_indexer tests

`chain` builds transactions and blocks the way the RPC parser would:
instructions are appended to the transaction's flat list in execution
order and linked to their parent.
"""
import base58
import pytest
from datetime import datetime, timezone
from typing import List, Optional

from jup_indexer.constants import (
    JUPITER_PROGRAM_ID,
    SOL_MINT_ADDRESS,
    TOKEN_PROGRAM_ID,
)
from jup_indexer.core.abi import (
    RouteArgs,
    encode_route_data,
    encode_shared_accounts_route_data,
    encode_transfer_checked_data,
    encode_transfer_data,
)
from jup_indexer.models.chain import Block, Instruction, TokenBalance, Transaction


SOL = SOL_MINT_ADDRESS
TRADER = "Trader1111111111111111111111111111111111111"
USER_SRC = "UserSrc111111111111111111111111111111111111"
USER_DST = "UserDst111111111111111111111111111111111111"
POOL_IN = "PoolIn1111111111111111111111111111111111111"
POOL_OUT = "PoolOut111111111111111111111111111111111111"
BLOCK_TIME = 1_719_000_000


class ChainBuilder:
    """Builds chain fixtures for the trade engine"""

    def transaction(
        self,
        signature: Optional[str] = "sig1",
        fee: int = 5000,
        balances: Optional[List[TokenBalance]] = None,
    ) -> Transaction:
        return Transaction(
            signatures=[signature] if signature is not None else [],
            fee=fee,
            token_balances=balances or [],
        )

    def route(
        self,
        tx: Transaction,
        destination_mint: str,
        in_amount: int = 0,
        source_account: str = USER_SRC,
        destination_account: str = USER_DST,
        authority: str = TRADER,
        parent: Optional[Instruction] = None,
        committed: bool = True,
    ) -> Instruction:
        accounts = [
            TOKEN_PROGRAM_ID, authority, source_account, destination_account,
            "JupDest", destination_mint, "PlatformFee", "EventAuth", JUPITER_PROGRAM_ID,
        ]
        data = encode_route_data(RouteArgs(in_amount, 0, 50, 0))
        ins = Instruction(JUPITER_PROGRAM_ID, accounts, data, is_committed=committed)
        return tx.add_instruction(ins, parent)

    def shared_route(
        self,
        tx: Transaction,
        source_mint: str,
        destination_mint: str,
        in_amount: int,
        authority: str = TRADER,
        parent: Optional[Instruction] = None,
        committed: bool = True,
    ) -> Instruction:
        accounts = [
            TOKEN_PROGRAM_ID, "ProgramAuth", authority, USER_SRC, POOL_IN, POOL_OUT,
            USER_DST, source_mint, destination_mint, "PlatformFee", "Token2022",
            "EventAuth", JUPITER_PROGRAM_ID,
        ]
        data = encode_shared_accounts_route_data(RouteArgs(in_amount, 0, 50, 0), route_id=3)
        ins = Instruction(JUPITER_PROGRAM_ID, accounts, data, is_committed=committed)
        return tx.add_instruction(ins, parent)

    def transfer(
        self,
        tx: Transaction,
        source: str,
        destination: str,
        amount: int,
        parent: Optional[Instruction] = None,
    ) -> Instruction:
        ins = Instruction(
            TOKEN_PROGRAM_ID, [source, destination, "Authority"], encode_transfer_data(amount)
        )
        return tx.add_instruction(ins, parent)

    def transfer_checked(
        self,
        tx: Transaction,
        source: str,
        mint: str,
        destination: str,
        amount: int,
        parent: Optional[Instruction] = None,
    ) -> Instruction:
        ins = Instruction(
            TOKEN_PROGRAM_ID,
            [source, mint, destination, "Authority"],
            encode_transfer_checked_data(amount, 6),
        )
        return tx.add_instruction(ins, parent)

    def block(self, *txs: Transaction, slot: int = 250_000_000, timestamp: int = BLOCK_TIME) -> Block:
        return Block(slot=slot, timestamp=timestamp, transactions=list(txs))


@pytest.fixture
def chain():
    return ChainBuilder()


@pytest.fixture
def block_time():
    return datetime.fromtimestamp(BLOCK_TIME, tz=timezone.utc)


def b58(data: bytes) -> str:
    return base58.b58encode(data).decode()


# account index layout of getblock_tx()
RPC_KEYS = [
    TRADER,                                         # 0 signer
    USER_SRC,                                       # 1
    USER_DST,                                       # 2
    POOL_IN,                                        # 3
    POOL_OUT,                                       # 4
    JUPITER_PROGRAM_ID,                             # 5
    TOKEN_PROGRAM_ID,                               # 6
    "XYZmint111111111111111111111111111111111111",  # 7
]
XYZ_MINT = RPC_KEYS[7]


def getblock_tx(signature="sigABC", err=None, stack_heights=True) -> dict:
    """
    One getBlock transaction (encoding="json"): a direct route spending
    1_000_000 lamports for 500 XYZ, SOL mint loaded from a lookup table.
    """
    inner = [
        {"programIdIndex": 6, "accounts": [1, 8, 3, 0],
         "data": b58(encode_transfer_checked_data(1_000_000, 9))},
        {"programIdIndex": 6, "accounts": [4, 7, 2, 0],
         "data": b58(encode_transfer_checked_data(500, 6))},
    ]
    if stack_heights:
        for ix in inner:
            ix["stackHeight"] = 2
    return {
        "transaction": {
            "signatures": [signature],
            "message": {
                "accountKeys": list(RPC_KEYS),
                "instructions": [
                    {"programIdIndex": 5, "accounts": [6, 0, 1, 2, 4, 7, 5, 5, 5],
                     "data": b58(encode_route_data(RouteArgs(1_000_000, 490, 50, 0))),
                     "stackHeight": 1},
                ],
            },
        },
        "meta": {
            "err": err,
            "fee": 5000,
            "innerInstructions": [{"index": 0, "instructions": inner}],
            "loadedAddresses": {"writable": [], "readonly": [SOL_MINT_ADDRESS]},
            "preTokenBalances": [
                {"accountIndex": 3, "mint": SOL_MINT_ADDRESS, "owner": "pool",
                 "uiTokenAmount": {"amount": "10"}},
            ],
            "postTokenBalances": [
                {"accountIndex": 3, "mint": SOL_MINT_ADDRESS, "owner": "pool",
                 "uiTokenAmount": {"amount": "1000010"}},
                {"accountIndex": 2, "mint": XYZ_MINT, "owner": "trader",
                 "uiTokenAmount": {"amount": "500"}},
            ],
        },
    }
