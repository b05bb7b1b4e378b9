"""
Indexer entry point

Fetches Jupiter swaps block by block, extracts trades and stores them.

    python -m jup_indexer --from-slot 250000000 --to-slot 250000999
    python -m jup_indexer --blocks-dir ./blocks --dry-run
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from .config import Settings
from .core.batch_processor import BatchProcessor
from .db import Database
from .exceptions import IndexerException
from .logger import BatchLogger, setup_logging
from .models.chain import Block
from .source import RpcBlockSource, load_blocks_from_dir

logger = logging.getLogger(__name__)

shutdown_event = asyncio.Event()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract Jupiter v6 trades into SQLite")
    parser.add_argument("--from-slot", type=int, help="First slot (default: resume from checkpoint)")
    parser.add_argument("--to-slot", type=int, help="Last slot (default: current finalized slot)")
    parser.add_argument("--blocks-dir", help="Replay saved getBlock JSON files instead of RPC")
    parser.add_argument("--db", help="SQLite path (default: DB_PATH)")
    parser.add_argument("--batch-size", type=int, help="Slots per batch (default: BATCH_SIZE)")
    parser.add_argument("--log-level", help="Log level (default: LOG_LEVEL)")
    parser.add_argument("--dry-run", action="store_true", help="Process without writing to the database")
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    if args.db:
        settings.DB_PATH = args.db
    if args.batch_size:
        settings.BATCH_SIZE = args.batch_size
    if args.log_level:
        settings.LOG_LEVEL = args.log_level
    settings.validate()
    return settings


def resolve_start_slot(args: argparse.Namespace, settings: Settings, db: Database) -> int:
    if args.from_slot is not None:
        return args.from_slot
    last_slot = db.get_last_slot()
    if last_slot is not None:
        logger.info(f"Resuming after checkpoint slot {last_slot}")
        return last_slot + 1
    return settings.START_SLOT


def handle_batch(
    blocks: List[Block],
    processor: BatchProcessor,
    db: Database,
    batch_logger: BatchLogger,
    dry_run: bool = False
):
    if not blocks:
        return None
    result = processor.process(blocks)
    if not dry_run:
        db.save_batch(result)
    batch_logger.log_batch(result, first_slot=blocks[0].slot, dry_run=dry_run)
    return result


def _chunks(blocks: Iterable[Block], size: int) -> Iterable[List[Block]]:
    chunk: List[Block] = []
    for block in blocks:
        chunk.append(block)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def run_offline(args, settings: Settings, db: Database, processor: BatchProcessor) -> int:
    blocks = load_blocks_from_dir(Path(args.blocks_dir), args.from_slot, args.to_slot)
    batch_logger = BatchLogger()
    batches = 0
    for chunk in _chunks(blocks, settings.BATCH_SIZE):
        handle_batch(chunk, processor, db, batch_logger, args.dry_run)
        batches += 1
    logger.info(f"Replayed {batches} batches from {args.blocks_dir}")
    return batches


async def run_rpc(args, settings: Settings, db: Database, processor: BatchProcessor) -> int:
    batch_logger = BatchLogger()
    batches = 0
    
    async with RpcBlockSource(
        settings.RPC_URL,
        concurrency=settings.RPC_CONCURRENCY,
        timeout=settings.RPC_TIMEOUT_SECONDS
    ) as source:
        from_slot = resolve_start_slot(args, settings, db)
        to_slot = args.to_slot if args.to_slot is not None else await source.get_slot()
        logger.info(f"Indexing slots {from_slot}..{to_slot}")
        
        async for blocks in source.iter_batches(from_slot, to_slot, settings.BATCH_SIZE):
            await asyncio.to_thread(handle_batch, blocks, processor, db, batch_logger, args.dry_run)
            batches += 1
            if shutdown_event.is_set():
                logger.info("Shutdown requested, stopping after current batch")
                break
    
    return batches


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    
    try:
        settings = build_settings(args)
    except IndexerException as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    
    setup_logging(settings)
    db = Database(settings.DB_PATH)
    processor = BatchProcessor(bucket=settings.BUCKET)
    
    try:
        if args.blocks_dir:
            run_offline(args, settings, db, processor)
        else:
            loop = asyncio.new_event_loop()
            try:
                for sig in (signal.SIGINT, signal.SIGTERM):
                    try:
                        loop.add_signal_handler(sig, shutdown_event.set)
                    except NotImplementedError:
                        # Windows event loops have no signal handlers
                        pass
                loop.run_until_complete(run_rpc(args, settings, db, processor))
            finally:
                loop.close()
    except IndexerException as e:
        logger.error(f"Indexing stopped: {e}", exc_info=True)
        return 1
    
    logger.info(f"Summary: {db.get_summary()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
