"""
RiskGate Assessment Store

Supabase-backed persistence for assessments (the `assessments` table).
Serves as the historical-assessment reader for the pattern matcher and
the baseline learner.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import ValidationError
from supabase import Client

from riskgate.schemas.records import AssessmentRecord

from .connection import get_supabase_client


logger = logging.getLogger(__name__)


class AssessmentStore:
    """
    CRUD over stored assessments.

    Reads fail open (None / empty list); writes return False on failure.
    """

    TABLE_NAME = "assessments"

    def __init__(self, client: Optional[Client] = None) -> None:
        self.client = client if client is not None else get_supabase_client()

    def create(self, record: AssessmentRecord) -> bool:
        if self.client is None:
            return False
        try:
            self.client.table(self.TABLE_NAME).insert(record.to_row()).execute()
            logger.debug(f"Stored assessment {record.id} for {record.actor_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to store assessment {record.id}: {e}")
            return False

    def get(self, assessment_id: str) -> Optional[AssessmentRecord]:
        if self.client is None:
            return None
        try:
            response = self.client.table(self.TABLE_NAME).select("*").eq(
                "id", assessment_id
            ).execute()
            if not response.data:
                return None
            return AssessmentRecord.model_validate(response.data[0])
        except ValidationError as e:
            logger.error(f"Malformed assessment row {assessment_id}: {e}")
            return None
        except Exception as e:
            logger.error(f"Failed to load assessment {assessment_id}: {e}")
            return None

    def update(self, record: AssessmentRecord) -> bool:
        if self.client is None:
            return False
        try:
            response = self.client.table(self.TABLE_NAME).update(record.to_row()).eq(
                "id", record.id
            ).execute()
            if not response.data:
                logger.warning(f"Assessment {record.id} not found for update")
                return False
            return True
        except Exception as e:
            logger.error(f"Failed to update assessment {record.id}: {e}")
            return False

    def fetch_history(self, actor_id: str, limit: int) -> List[AssessmentRecord]:
        """Most recent assessments for an actor, newest first."""
        if self.client is None:
            return []
        try:
            response = self.client.table(self.TABLE_NAME).select("*").eq(
                "actor_id", actor_id
            ).order("created_at", desc=True).limit(limit).execute()
        except Exception as e:
            logger.error(f"Failed to fetch history for {actor_id}: {e}")
            return []

        records = []
        for row in response.data or []:
            try:
                records.append(AssessmentRecord.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed assessment row {row.get('id')}: {e}")
        return records
