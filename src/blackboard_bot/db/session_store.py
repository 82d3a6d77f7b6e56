"""
Supabase session store.

Persists one snapshot row per caller identity so sessions, ignore lists
and alerts survive restarts of the bot.
"""

import logging
from typing import Dict, Optional

from supabase import Client

from blackboard_bot.db.client import get_supabase_client
from blackboard_bot.models import SessionSnapshot, utcnow

logger = logging.getLogger(__name__)

# Table name in Supabase
TABLE_NAME = "blackboard_sessions"


class SupabaseSessionStore:
    """
    Stores session snapshots in Supabase.

    Rows are upserted on ``identity``; the snapshot itself is a JSONB column.
    Errors propagate: the registry decides how to isolate them.
    """

    def __init__(self, client: Optional[Client] = None):
        """
        Initialize the session store.

        Args:
            client: Optional Supabase client, will use default if not provided
        """
        self.client = client or get_supabase_client()
        self.table = self.client.table(TABLE_NAME)

    def load_all(self) -> Dict[str, SessionSnapshot]:
        result = self.table.select("identity, snapshot").execute()

        snapshots = {}
        for row in result.data or []:
            try:
                snapshots[row["identity"]] = SessionSnapshot.model_validate(row["snapshot"])
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping unreadable session row: {e}")

        logger.info(f"Loaded {len(snapshots)} session snapshot(s) from Supabase")
        return snapshots

    def save(self, identity: str, snapshot: SessionSnapshot) -> None:
        self.table.upsert(
            {
                "identity": identity,
                "snapshot": snapshot.model_dump(mode="json"),
                "updated_at": utcnow().isoformat(),
            },
            on_conflict="identity",
        ).execute()
        logger.debug(f"Stored snapshot for {identity}")

    def delete(self, identity: str) -> None:
        self.table.delete().eq("identity", identity).execute()
        logger.debug(f"Deleted snapshot for {identity}")


# SQL for creating the Supabase table (run this in Supabase SQL Editor)
CREATE_TABLE_SQL = """
-- Create blackboard_sessions table for session persistence
CREATE TABLE IF NOT EXISTS blackboard_sessions (
    identity TEXT PRIMARY KEY,
    snapshot JSONB NOT NULL,
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_blackboard_sessions_updated_at
    ON blackboard_sessions(updated_at);

-- Enable Row Level Security (optional but recommended)
ALTER TABLE blackboard_sessions ENABLE ROW LEVEL SECURITY;

-- Create policy for service role (full access)
CREATE POLICY "Service role has full access" ON blackboard_sessions
    FOR ALL
    USING (true)
    WITH CHECK (true);
"""
