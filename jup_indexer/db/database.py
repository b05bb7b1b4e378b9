"""
Database Manager for the Trade Indexer

Handles persistence of SolTrades, TokenTrades, the JupSignature ledger
and the processing checkpoint.
"""

import sqlite3
import logging
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from pathlib import Path

from ..exceptions import StorageException

logger = logging.getLogger(__name__)


SOL_TRADE_COLUMNS = (
    "id", "bucket", "trader", "mint", "timestamp",
    "token_delta", "sol_delta", "fee", "created_at",
)
TOKEN_TRADE_COLUMNS = (
    "id", "signature", "bucket", "trader", "timestamp",
    "mint_spent", "amount_spent", "mint_got", "amount_got", "fee",
)
JUP_SIGNATURE_COLUMNS = (
    "id", "timestamp", "bucket", "processed", "is_trade_extracted", "error_message",
)


def _insert_or_ignore(table: str, columns: tuple) -> str:
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT OR IGNORE INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"


class Database:
    """
    SQLite database manager for indexer output.
    
    Features:
    - Insert-or-ignore writes keyed on transaction signature
    - One transaction per batch, checkpoint included
    - Resumption helpers (last slot, previous signature)
    """
    
    def __init__(self, db_path: str = "jup_trades.db"):
        """
        Initialize database manager.
        
        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._init_db()
        logger.info(f"Database initialized: {db_path}")
    
    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)
    
    def _init_db(self):
        """Initialize database with schema"""
        schema_path = Path(__file__).parent / "schema.sql"
        
        if not schema_path.exists():
            logger.error(f"Schema file not found: {schema_path}")
            raise FileNotFoundError(f"Schema file not found: {schema_path}")
        
        with open(schema_path, 'r') as f:
            schema_sql = f.read()
        
        with self._connect() as conn:
            conn.executescript(schema_sql)
            
            # MIGRATION: created_at arrived after the first release of sol_trades
            try:
                conn.execute("ALTER TABLE sol_trades ADD COLUMN created_at TEXT")
                logger.info("Added created_at column to existing database")
            except sqlite3.OperationalError:
                # Column already exists
                pass
        
        logger.debug("Database schema created/verified")
    
    # =========================================================================
    # Batch Operations
    # =========================================================================
    
    def save_batch(self, result, last_slot: Optional[int] = None) -> Dict[str, int]:
        """
        Persist one processed batch.
        
        Args:
            result: BatchResult from the batch processor
            last_slot: Checkpoint to record (defaults to result.last_slot)
        
        Returns:
            Number of rows actually inserted per table
        """
        last_slot = last_slot if last_slot is not None else result.last_slot
        inserted = {}
        
        try:
            with self._connect() as conn:
                inserted["sol_trades"] = self._insert_rows(
                    conn, "sol_trades", SOL_TRADE_COLUMNS, result.sol_trades
                )
                inserted["token_trades"] = self._insert_rows(
                    conn, "token_trades", TOKEN_TRADE_COLUMNS, result.token_trades
                )
                inserted["jup_signatures"] = self._insert_rows(
                    conn, "jup_signatures", JUP_SIGNATURE_COLUMNS, result.jup_signatures
                )
                if last_slot is not None:
                    self._set_last_slot(conn, last_slot)
        except sqlite3.Error as e:
            raise StorageException(f"Failed to save batch: {e}", last_slot=last_slot) from e
        
        logger.debug(f"Batch saved up to slot {last_slot}: {inserted}")
        return inserted
    
    @staticmethod
    def _insert_rows(conn: sqlite3.Connection, table: str, columns: tuple, records) -> int:
        if not records:
            return 0
        rows = []
        for record in records:
            row = record.to_row()
            rows.append(tuple(row[c] for c in columns))
        before = conn.total_changes
        conn.executemany(_insert_or_ignore(table, columns), rows)
        return conn.total_changes - before
    
    # =========================================================================
    # Checkpoint Operations
    # =========================================================================
    
    def get_last_slot(self) -> Optional[int]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT last_slot FROM processor_status WHERE id = 0"
            ).fetchone()
            return row[0] if row else None
    
    def set_last_slot(self, slot: int):
        with self._connect() as conn:
            self._set_last_slot(conn, slot)
    
    @staticmethod
    def _set_last_slot(conn: sqlite3.Connection, slot: int):
        conn.execute(
            """
            INSERT INTO processor_status (id, last_slot, updated_at)
            VALUES (0, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                last_slot = excluded.last_slot,
                updated_at = excluded.updated_at
            """,
            (slot, datetime.now(timezone.utc).isoformat())
        )
    
    def get_previous_signature(self) -> Optional[str]:
        """
        Get a signature from the timestamp just before the latest one.
        
        Query helper for operators resuming a signature-driven scan; the
        indexer itself resumes from processor_status.last_slot.
        
        Resuming from it leaves no gap: some signatures of the latest
        timestamp get scanned again, which insert-or-ignore absorbs.
        
        Returns:
            Signature or None when fewer than two timestamps are recorded
        """
        with self._connect() as conn:
            latest = conn.execute(
                "SELECT MAX(timestamp) FROM jup_signatures"
            ).fetchone()[0]
            if latest is None:
                return None
            
            previous = conn.execute(
                "SELECT MAX(timestamp) FROM jup_signatures WHERE timestamp < ?",
                (latest,)
            ).fetchone()[0]
            if previous is None:
                return None
            
            row = conn.execute(
                """
                SELECT id FROM jup_signatures
                WHERE timestamp = ?
                ORDER BY id ASC
                LIMIT 1
                """,
                (previous,)
            ).fetchone()
            return row[0] if row else None
    
    # =========================================================================
    # Signature Ledger Operations
    # Operator helpers for marking rows by hand; save_batch already writes
    # every signature as processed with its trade extracted.
    # =========================================================================
    
    def mark_processed(self, signature: str):
        """Flag a signature as processed with its trade extracted."""
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE jup_signatures
                SET processed = 1, is_trade_extracted = 1
                WHERE id = ?
                """,
                (signature,)
            )
    
    def mark_error(self, signature: str, error_message: str):
        """Flag a signature as processed with an error."""
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE jup_signatures
                SET processed = 1, error_message = ?
                WHERE id = ?
                """,
                (error_message, signature)
            )
        logger.warning(f"Signature {signature[:16]}... marked with error: {error_message}")
    
    def get_signature(self, signature: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT * FROM jup_signatures WHERE id = ?",
                (signature,)
            ).fetchone()
            return dict(row) if row else None
    
    # =========================================================================
    # Query Operations
    # =========================================================================
    
    def get_sol_trades(self, limit: int = 100) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                "SELECT * FROM sol_trades ORDER BY timestamp DESC LIMIT ?",
                (limit,)
            )
            return [dict(row) for row in cursor.fetchall()]
    
    def get_token_trades(self, limit: int = 100) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                "SELECT * FROM token_trades ORDER BY timestamp DESC LIMIT ?",
                (limit,)
            )
            return [dict(row) for row in cursor.fetchall()]
    
    def get_summary(self) -> Dict[str, Any]:
        """
        Get overall indexer summary.
        
        Returns:
            Summary dictionary with key counts
        """
        with self._connect() as conn:
            sol_count = conn.execute("SELECT COUNT(*) FROM sol_trades").fetchone()[0]
            token_count = conn.execute("SELECT COUNT(*) FROM token_trades").fetchone()[0]
            signatures = conn.execute("SELECT COUNT(*) FROM jup_signatures").fetchone()[0]
            errors = conn.execute(
                "SELECT COUNT(*) FROM jup_signatures WHERE error_message IS NOT NULL"
            ).fetchone()[0]
        
        return {
            "sol_trades": sol_count,
            "token_trades": token_count,
            "signatures": signatures,
            "signature_errors": errors,
            "last_slot": self.get_last_slot(),
        }
