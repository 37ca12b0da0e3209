"""
Database connection management.

Provides SQLite connection for the session and sync ledger.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "claude_tracker.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite database connection in WAL mode.
    
    Args:
        db_path: Path to SQLite database file
        
    Returns:
        SQLite connection with write-ahead logging enabled
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    return conn
