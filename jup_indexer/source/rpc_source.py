"""
RPC Block Source

Fetches blocks over JSON-RPC `getBlock` with bounded concurrency and
hands them out in slot order, one batch at a time.
"""

import asyncio
import logging
from typing import AsyncIterator, List, Optional

import aiohttp

from ..constants import RPC_BLOCK_NOT_AVAILABLE, RPC_SLOT_SKIPPED
from ..exceptions import RpcException
from ..models.chain import Block
from ..utils.retry import async_retry
from .rpc_parser import parse_block

logger = logging.getLogger(__name__)

SKIPPED_SLOT_CODES = {RPC_SLOT_SKIPPED, RPC_BLOCK_NOT_AVAILABLE}

TRANSIENT_ERRORS = (RpcException,)


def is_transient(error: Exception) -> bool:
    """Client side HTTP errors other than rate limiting will not heal on retry"""
    status = getattr(error, "context", {}).get("status")
    if status is None:
        return True
    return status == 429 or status >= 500


class RpcBlockSource:
    """
    Block source backed by a Solana RPC node.
    
    Usage:
        async with RpcBlockSource(rpc_url, concurrency=20) as source:
            async for blocks in source.iter_batches(250_000_000, 250_000_099, 50):
                ...
    """
    
    def __init__(
        self,
        rpc_url: str,
        concurrency: int = 20,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        if not rpc_url:
            raise RpcException("RPC_URL is not configured")
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._semaphore = asyncio.Semaphore(concurrency)
        self._session = session
        self._owns_session = session is None
        self._request_id = 0
    
    async def __aenter__(self) -> "RpcBlockSource":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self
    
    async def __aexit__(self, *exc):
        await self.close()
    
    async def close(self):
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None
    
    async def _call(self, method: str, params: list) -> dict:
        if self._session is None:
            raise RpcException("Session not started, use 'async with'")
        
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params
        }
        
        async with self._semaphore:
            try:
                async with self._session.post(self.rpc_url, json=payload) as resp:
                    if resp.status != 200:
                        raise RpcException(f"{method} returned HTTP {resp.status}", status=resp.status)
                    return await resp.json()
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                # Transport and body decoding failures surface as RpcException
                raise RpcException(f"{method} request failed: {e!r}", method=method) from e
    
    @async_retry(max_attempts=3, delay=1.0, exceptions=TRANSIENT_ERRORS, should_retry=is_transient)
    async def get_slot(self, commitment: str = "finalized") -> int:
        data = await self._call("getSlot", [{"commitment": commitment}])
        if "error" in data:
            raise RpcException(f"getSlot failed: {data['error']}")
        return int(data["result"])
    
    @async_retry(max_attempts=3, delay=1.0, exceptions=TRANSIENT_ERRORS, should_retry=is_transient)
    async def get_block(self, slot: int) -> Optional[Block]:
        """
        Fetch one block.
        
        Returns:
            Block, or None when the slot was skipped / is not stored
        """
        data = await self._call("getBlock", [
            slot,
            {
                "encoding": "json",
                "maxSupportedTransactionVersion": 0,
                "transactionDetails": "full",
                "rewards": False,
                "commitment": "finalized"
            }
        ])
        
        error = data.get("error")
        if error:
            if error.get("code") in SKIPPED_SLOT_CODES:
                logger.debug(f"Slot {slot} skipped ({error.get('code')})")
                return None
            raise RpcException(f"getBlock failed: {error.get('message')}", slot=slot, code=error.get("code"))
        
        result = data.get("result")
        if result is None:
            return None
        return parse_block(slot, result)
    
    async def fetch_range(self, from_slot: int, to_slot: int) -> List[Block]:
        """Fetch slots [from_slot, to_slot], skipped slots left out, in slot order."""
        slots = range(from_slot, to_slot + 1)
        blocks = await asyncio.gather(*(self.get_block(slot) for slot in slots))
        return [block for block in blocks if block is not None]
    
    async def iter_batches(
        self,
        from_slot: int,
        to_slot: int,
        batch_size: int
    ) -> AsyncIterator[List[Block]]:
        """Yield blocks in consecutive windows of `batch_size` slots."""
        start = from_slot
        while start <= to_slot:
            end = min(start + batch_size - 1, to_slot)
            blocks = await self.fetch_range(start, end)
            logger.debug(f"Fetched {len(blocks)} blocks for slots {start}..{end}")
            yield blocks
            start = end + 1
