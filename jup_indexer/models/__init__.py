from .chain import Block, Instruction, TokenBalance, Transaction
from .trade import JupSignature, RouteKind, SolTrade, TokenTrade, Trade, narrow_amount

__all__ = [
    "Block",
    "Instruction",
    "TokenBalance",
    "Transaction",
    "JupSignature",
    "RouteKind",
    "SolTrade",
    "TokenTrade",
    "Trade",
    "narrow_amount",
]
