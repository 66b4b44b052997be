"""
RiskGate Audit Logger

Fire-and-forget audit log writer that inserts structured entries into the
Supabase `audit_logs` table after every evaluation, re-score, override,
trade outcome and baseline update.

Schema:
    audit_logs (
        event_id TEXT PRIMARY KEY,
        payload  JSONB,
        created_at TIMESTAMPTZ DEFAULT now()
    )
"""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import Client

from .connection import get_supabase_client

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Builds and inserts structured audit log payloads into Supabase.

    All writes are best-effort: errors are logged but never raised.
    """

    TABLE_NAME = "audit_logs"
    ENGINE_VERSION = "v1.0.0"

    def __init__(self, client: Optional[Client] = None) -> None:
        self._client = client if client is not None else get_supabase_client()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def log_event(
        self,
        action: str,
        actor_id: Optional[str],
        assessment_id: Optional[str] = None,
        risk_score: Optional[int] = None,
        verdict: Optional[str] = None,
        reasons: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """
        Build and insert an audit log entry.

        Returns:
            The event_id, or None if logging is disabled or failed.
        """
        if self._client is None:
            return None

        try:
            entry = self._build_entry(
                action, actor_id, assessment_id, risk_score, verdict, reasons, details
            )
            self._client.table(self.TABLE_NAME).insert({
                "event_id": entry["event_id"],
                "payload": entry,
            }).execute()
            logger.debug(f"Audit log inserted: {entry['event_id']} ({action})")
            return entry["event_id"]
        except Exception as e:
            logger.error(f"Audit log insertion failed: {e}")
            return None

    # ------------------------------------------------------------------
    # Payload Builder
    # ------------------------------------------------------------------

    def _build_entry(
        self,
        action: str,
        actor_id: Optional[str],
        assessment_id: Optional[str],
        risk_score: Optional[int],
        verdict: Optional[str],
        reasons: Optional[List[str]],
        details: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        return {
            # Metadata
            "event_id": f"evt_{uuid.uuid4()}",
            "timestamp": now.isoformat(),
            "environment": os.getenv("RISKGATE_ENV", "production"),
            "action": action,

            # Actor
            "actor": {
                "actor_id": actor_id,
                "assessment_id": assessment_id,
            },

            # Gate Analysis
            "gate_analysis": {
                "engine_version": self.ENGINE_VERSION,
                "risk_score": risk_score,
                "verdict": verdict,
                "reasons": list(reasons or []),
            },

            "details": details or {},
        }
