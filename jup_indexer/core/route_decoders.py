"""
Route Decoders

Turn one Jupiter swap instruction plus the transfers it triggered into a
normalized Trade. One decoder per instruction shape:

- route: only the destination mint is named by the instruction, both legs
  are recovered from the user's token account transfers.
- sharedAccountsRoute: both mints are named and the declared input amount
  is authoritative, only the received amount is correlated.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict

from ..models.chain import Instruction
from ..models.trade import RouteKind, Trade
from .abi import decode_route, decode_shared_accounts_route
from .transfer_correlator import correlate_legs, first_checked_transfer

logger = logging.getLogger(__name__)


class SwapDecoder(ABC):
    """Decodes one swap instruction shape into a Trade"""

    kind: RouteKind

    @abstractmethod
    def decode(self, ins: Instruction, block_time: datetime) -> Trade:
        ...

    @staticmethod
    def _signature(ins: Instruction) -> str:
        # A missing signature degrades to "" instead of failing the trade
        tx = ins.transaction
        if tx is None or not tx.signatures:
            return ""
        return tx.signatures[0]


class DirectRouteDecoder(SwapDecoder):
    kind = RouteKind.ROUTE

    def decode(self, ins: Instruction, block_time: datetime) -> Trade:
        route = decode_route(ins)
        tx = ins.get_transaction()
        accounts = route.accounts

        # in_amount is only a placeholder until a source transfer is found
        mint_spent = ""
        amount_spent = route.args.in_amount
        mint_got = accounts.destination_mint
        amount_got = 0

        legs = correlate_legs(
            tx,
            source_account=accounts.user_source_token_account,
            destination_account=accounts.user_destination_token_account,
        )
        if legs.spent.found:
            amount_spent = legs.spent.amount
            mint_spent = legs.spent.mint
        if legs.got.found:
            amount_got = legs.got.amount
            if legs.got.mint is not None:
                mint_got = legs.got.mint

        return Trade(
            kind=self.kind,
            signature=self._signature(ins),
            timestamp=block_time,
            trader=accounts.user_transfer_authority,
            mint_spent=mint_spent,
            amount_spent=amount_spent,
            mint_got=mint_got,
            amount_got=amount_got,
            fee=tx.fee,
        )


class SharedAccountsRouteDecoder(SwapDecoder):
    kind = RouteKind.SHARED_ACCOUNTS_ROUTE

    def decode(self, ins: Instruction, block_time: datetime) -> Trade:
        route = decode_shared_accounts_route(ins)
        tx = ins.get_transaction()
        accounts = route.accounts

        received = first_checked_transfer(tx)
        amount_got = received.amount if received else 0

        return Trade(
            kind=self.kind,
            signature=self._signature(ins),
            timestamp=block_time,
            trader=accounts.user_transfer_authority,
            mint_spent=accounts.source_mint,
            amount_spent=route.args.in_amount,
            mint_got=accounts.destination_mint,
            amount_got=amount_got,
            fee=tx.fee,
        )


DECODERS: Dict[RouteKind, SwapDecoder] = {
    RouteKind.ROUTE: DirectRouteDecoder(),
    RouteKind.SHARED_ACCOUNTS_ROUTE: SharedAccountsRouteDecoder(),
}


def decoder_for(kind: RouteKind) -> SwapDecoder:
    return DECODERS[kind]
