from .file_source import load_blocks_from_dir
from .rpc_parser import parse_block
from .rpc_source import RpcBlockSource

__all__ = ["load_blocks_from_dir", "parse_block", "RpcBlockSource"]
