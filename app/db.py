import sqlite3
from contextlib import contextmanager

from . import config


def init_db():
    config.DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(config.DB_PATH, check_same_thread=False)
    cur = conn.cursor()
    # One row per user, full onboarding state as JSON
    cur.execute("""
    CREATE TABLE IF NOT EXISTS onboarding_states(
        user_id TEXT PRIMARY KEY,
        relocation_type TEXT,
        current_step TEXT NOT NULL,
        state_json TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """)
    # Profile flags owned by the store (dashboard unlock)
    cur.execute("""
    CREATE TABLE IF NOT EXISTS profiles(
        user_id TEXT PRIMARY KEY,
        onboarding_complete INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT NOT NULL
    )
    """)
    # Standalone eligibility checks
    cur.execute("""
    CREATE TABLE IF NOT EXISTS decisions(
        decision_id TEXT PRIMARY KEY,
        eligible INTEGER NOT NULL,
        score INTEGER NOT NULL,
        reasons TEXT NOT NULL,
        recommendation TEXT NOT NULL,
        answers_json TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """)
    # Logs table (stores request/response logs independently)
    cur.execute("""
    CREATE TABLE IF NOT EXISTS logs(
        log_id TEXT PRIMARY KEY,
        direction TEXT NOT NULL, -- 'in' or 'out'
        payload_json TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """)
    conn.commit()
    conn.close()


@contextmanager
def get_conn():
    conn = sqlite3.connect(config.DB_PATH, check_same_thread=False)
    try:
        yield conn
    finally:
        conn.commit()
        conn.close()
