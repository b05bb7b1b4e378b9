"""
File Block Source

Replays getBlock results saved as `<slot>.json` files, for offline runs
and reprocessing.
"""

import json
import logging
from pathlib import Path
from typing import Iterator, List, Optional

from ..exceptions import InstructionDecodeError
from ..models.chain import Block
from .rpc_parser import parse_block

logger = logging.getLogger(__name__)


def list_block_files(path: Path) -> List[Path]:
    files = [p for p in path.iterdir() if p.is_file() and p.suffix == ".json" and p.stem.isdigit()]
    return sorted(files, key=lambda p: int(p.stem))


def load_blocks_from_dir(
    path: Path,
    from_slot: Optional[int] = None,
    to_slot: Optional[int] = None,
) -> Iterator[Block]:
    """
    Yield blocks from a directory of saved getBlock results, in slot order.

    Each file holds either the bare `result` object or the whole JSON-RPC
    response.
    """
    path = Path(path)
    for file in list_block_files(path):
        slot = int(file.stem)
        if from_slot is not None and slot < from_slot:
            continue
        if to_slot is not None and slot > to_slot:
            break
        try:
            payload = json.loads(file.read_text(encoding="utf-8"))
        except ValueError as e:
            raise InstructionDecodeError(f"Unreadable block file {file.name}: {e}", slot=slot) from e
        if "result" in payload and "jsonrpc" in payload:
            payload = payload["result"]
        if payload is None:
            logger.debug(f"Empty block file {file.name}")
            continue
        yield parse_block(slot, payload)
