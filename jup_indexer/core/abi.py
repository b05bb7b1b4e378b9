"""
Instruction ABI

Decodes the two Jupiter v6 swap instructions and the two SPL token
transfer instructions the trade engine correlates with them.

Account order mirrors the on-chain IDL:

  route                        shared_accounts_route
   0 token_program              0 token_program
   1 user_transfer_authority    1 program_authority
   2 user_source_token_account  2 user_transfer_authority
   3 user_destination_token..   3 source_token_account
   4 destination_token_account  4 program_source_token_account
   5 destination_mint           5 program_destination_token_account
   6 platform_fee_account       6 destination_token_account
   7 event_authority            7 source_mint
   8 program                    8 destination_mint
                                9 platform_fee_account
                               10 token_2022_program
                               11 event_authority
                               12 program

The route plan in the middle of both payloads is variable length; only the
fixed trailer after it is needed, so it is read from the end.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Sequence

from ..constants import (
    ROUTE_DISC,
    ROUTE_TRAILER_FORMAT,
    ROUTE_TRAILER_SIZE,
    SHARED_ACCOUNTS_ROUTE_DISC,
    TOKEN_TRANSFER_CHECKED_TAG,
    TOKEN_TRANSFER_TAG,
)
from ..exceptions import InstructionDecodeError
from ..models.chain import Instruction


@dataclass(frozen=True)
class RouteArgs:
    in_amount: int
    quoted_out_amount: int
    slippage_bps: int
    platform_fee_bps: int


@dataclass(frozen=True)
class RouteAccounts:
    token_program: str
    user_transfer_authority: str
    user_source_token_account: str
    user_destination_token_account: str
    destination_token_account: str
    destination_mint: str
    platform_fee_account: str
    event_authority: str
    program: str


@dataclass(frozen=True)
class SharedAccountsRouteAccounts:
    token_program: str
    program_authority: str
    user_transfer_authority: str
    source_token_account: str
    program_source_token_account: str
    program_destination_token_account: str
    destination_token_account: str
    source_mint: str
    destination_mint: str
    platform_fee_account: str
    token_2022_program: str
    event_authority: str
    program: str


@dataclass(frozen=True)
class DecodedRoute:
    accounts: RouteAccounts
    args: RouteArgs


@dataclass(frozen=True)
class DecodedSharedAccountsRoute:
    accounts: SharedAccountsRouteAccounts
    args: RouteArgs
    id: int


@dataclass(frozen=True)
class DecodedTransfer:
    source: str
    destination: str
    authority: str
    amount: int


@dataclass(frozen=True)
class DecodedTransferChecked:
    source: str
    mint: str
    destination: str
    authority: str
    amount: int
    decimals: int


def _require_accounts(ins: Instruction, count: int, name: str) -> Sequence[str]:
    if len(ins.accounts) < count:
        raise InstructionDecodeError(
            f"{name}: expected {count} accounts",
            got=len(ins.accounts),
        )
    return ins.accounts


def _read_trailer(data: bytes, header_size: int, name: str) -> RouteArgs:
    if len(data) < header_size + ROUTE_TRAILER_SIZE:
        raise InstructionDecodeError(f"{name}: payload too short", size=len(data))
    in_amount, quoted_out, slippage, platform_fee = struct.unpack_from(
        ROUTE_TRAILER_FORMAT, data, len(data) - ROUTE_TRAILER_SIZE
    )
    return RouteArgs(in_amount, quoted_out, slippage, platform_fee)


def decode_route(ins: Instruction) -> DecodedRoute:
    if ins.d8 != ROUTE_DISC:
        raise InstructionDecodeError("route: discriminator mismatch", d8=ins.d8.hex())
    a = _require_accounts(ins, 9, "route")
    # discriminator + empty route plan vec length
    args = _read_trailer(ins.data, 8 + 4, "route")
    return DecodedRoute(accounts=RouteAccounts(*a[:9]), args=args)


def decode_shared_accounts_route(ins: Instruction) -> DecodedSharedAccountsRoute:
    if ins.d8 != SHARED_ACCOUNTS_ROUTE_DISC:
        raise InstructionDecodeError(
            "shared_accounts_route: discriminator mismatch", d8=ins.d8.hex()
        )
    a = _require_accounts(ins, 13, "shared_accounts_route")
    # discriminator + u8 id + empty route plan vec length
    args = _read_trailer(ins.data, 8 + 1 + 4, "shared_accounts_route")
    return DecodedSharedAccountsRoute(
        accounts=SharedAccountsRouteAccounts(*a[:13]),
        args=args,
        id=ins.data[8],
    )


def decode_transfer(ins: Instruction) -> DecodedTransfer:
    if ins.d1 != TOKEN_TRANSFER_TAG or len(ins.data) < 9:
        raise InstructionDecodeError("transfer: bad payload", size=len(ins.data))
    a = _require_accounts(ins, 3, "transfer")
    (amount,) = struct.unpack_from("<Q", ins.data, 1)
    return DecodedTransfer(source=a[0], destination=a[1], authority=a[2], amount=amount)


def decode_transfer_checked(ins: Instruction) -> DecodedTransferChecked:
    if ins.d1 != TOKEN_TRANSFER_CHECKED_TAG or len(ins.data) < 10:
        raise InstructionDecodeError("transferChecked: bad payload", size=len(ins.data))
    a = _require_accounts(ins, 4, "transferChecked")
    amount, decimals = struct.unpack_from("<QB", ins.data, 1)
    return DecodedTransferChecked(
        source=a[0],
        mint=a[1],
        destination=a[2],
        authority=a[3],
        amount=amount,
        decimals=decimals,
    )


# Encoders for building instructions (tests and replay tooling)

def encode_route_data(args: RouteArgs, route_plan: bytes = b"\x00\x00\x00\x00") -> bytes:
    return ROUTE_DISC + route_plan + struct.pack(
        ROUTE_TRAILER_FORMAT,
        args.in_amount, args.quoted_out_amount, args.slippage_bps, args.platform_fee_bps,
    )


def encode_shared_accounts_route_data(
    args: RouteArgs, route_id: int = 0, route_plan: bytes = b"\x00\x00\x00\x00"
) -> bytes:
    return SHARED_ACCOUNTS_ROUTE_DISC + bytes([route_id]) + route_plan + struct.pack(
        ROUTE_TRAILER_FORMAT,
        args.in_amount, args.quoted_out_amount, args.slippage_bps, args.platform_fee_bps,
    )


def encode_transfer_data(amount: int) -> bytes:
    return struct.pack("<BQ", TOKEN_TRANSFER_TAG, amount)


def encode_transfer_checked_data(amount: int, decimals: int) -> bytes:
    return struct.pack("<BQB", TOKEN_TRANSFER_CHECKED_TAG, amount, decimals)
