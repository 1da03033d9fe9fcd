"""
Intent execution.

Applies the intents of a plan through the directory client, in order, or
only logs them in dry-run mode. The first failing intent stops execution
and its error propagates to the caller.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from appmgmt.graph.client import GraphDirectoryClient
from appmgmt.policy.intents import (
    AssignAttribute, AssignPolicy, CreateAttributeDefinition, CreateAttributeSet,
    CreateCustomPolicy, IntentResult, Plan, SavePolicy, WriteIntent,
)


logger = logging.getLogger(__name__)


class IntentExecutor:
    """
    Executes write intents against the directory.
    """

    def __init__(self, client: GraphDirectoryClient, dry_run: bool = False):
        """
        Args:
            client: Directory client used for every write.
            dry_run: Log intents and their payloads instead of applying them.
        """
        self.client = client
        self.dry_run = dry_run

    async def apply(self, plan: Plan) -> List[IntentResult]:
        """Apply every intent of ``plan`` and report one result per intent."""
        results: List[IntentResult] = []
        if plan.is_noop:
            logger.info("Nothing to do: %s", plan.summary)
            return results

        for intent in plan.intents:
            description = intent.describe()
            if self.dry_run:
                logger.info("[dry-run] %s", description)
                payload = getattr(intent, "payload", None)
                if payload is not None:
                    logger.info("[dry-run] payload: %s", json.dumps(payload, sort_keys=True))
                detail = f"Would {description[:1].lower()}{description[1:]}"
                results.append(IntentResult(intent=intent, applied=False, detail=detail))
                continue

            logger.info("Applying: %s", description)
            data = await self._apply_one(intent)
            results.append(IntentResult(intent=intent, applied=True, detail=description, data=data))
        return results

    async def _apply_one(self, intent: WriteIntent) -> Optional[Dict[str, Any]]:
        if isinstance(intent, SavePolicy):
            saved = await self.client.save_policy(intent.policy_type, intent.policy_id, intent.payload)
            return saved.to_wire()

        if isinstance(intent, CreateCustomPolicy):
            created = await self.client.create_custom_policy(intent.payload)
            if intent.assign_to_app:
                await self.client.assign_policy(intent.assign_to_app, created.policy_id)
            return created.to_wire()

        if isinstance(intent, AssignPolicy):
            await self.client.assign_policy(intent.app_id, intent.policy_id)
            return None

        if isinstance(intent, CreateAttributeSet):
            created = await self.client.create_attribute_set(intent.attribute_set, intent.description)
            return {"created": created}

        if isinstance(intent, CreateAttributeDefinition):
            created = await self.client.create_attribute_definition(
                intent.attribute_set, intent.attribute_name, intent.allowed_value, intent.description
            )
            return {"created": created}

        if isinstance(intent, AssignAttribute):
            await self.client.assign_attribute(
                intent.principal, intent.attribute_set, intent.attribute_name, intent.value
            )
            return None

        raise ValueError(f"Unknown intent: {intent!r}")
