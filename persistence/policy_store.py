"""
RiskGate Policy Store

Reads the active threshold configuration from the `policies` table.
Falls back to in-code Policy() defaults when storage is disabled, empty
or failing.
"""

import logging
from typing import Optional

from pydantic import ValidationError
from supabase import Client

from riskgate.schemas.inputs import Policy

from .connection import get_supabase_client


logger = logging.getLogger(__name__)


class PolicyStore:
    TABLE_NAME = "policies"

    def __init__(self, client: Optional[Client] = None) -> None:
        self.client = client if client is not None else get_supabase_client()

    def get_active(self) -> Policy:
        if self.client is None:
            return Policy()
        try:
            response = self.client.table(self.TABLE_NAME).select("*").eq(
                "active", True
            ).limit(1).execute()
            if not response.data:
                logger.debug("No active policy configured, using defaults")
                return Policy()
            return Policy.model_validate(response.data[0])
        except ValidationError as e:
            logger.error(f"Malformed policy row, using defaults: {e}")
            return Policy()
        except Exception as e:
            logger.error(f"Failed to load active policy, using defaults: {e}")
            return Policy()
