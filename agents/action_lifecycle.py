from services.database import DatabaseService
from services.audit_ledger import AuditLedger
from agents.action_executor import ActionExecutor
from models.action import Action, ActionOutcome
from models.audit_entry import (
    AuditEntry,
    STAGE_ACTION_CREATED,
    STAGE_ACTION_CANCELLED,
    STAGE_ACTION_EXECUTED,
)
from models.payloads import parse_action_payload
from models.errors import ValidationFailed, PreconditionFailed, ActionNotFound
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class ActionLifecycleManager:
    """
    Owns the Action state machine:

        pending --confirm--> confirmed --execute--> executed | failed
        pending --reject---> cancelled

    Leaving 'pending' is a conditional update on status, so an Action is
    decided at most once even when two surfaces answer concurrently. The
    executor is only called by the caller that won that update.
    """

    def __init__(
        self,
        db: Optional[DatabaseService] = None,
        executor: Optional[ActionExecutor] = None,
        ledger: Optional[AuditLedger] = None,
    ):
        self.db = db or DatabaseService()
        self.executor = executor or ActionExecutor(db=self.db)
        self.ledger = ledger or AuditLedger(db=self.db)

    def create_action(
        self,
        user_id: str,
        action_type: str,
        payload: Dict[str, Any],
        requires_confirmation: bool = True,
        confirmation_prompt: Optional[str] = None,
        suggestion_id: Optional[str] = None,
    ) -> ActionOutcome:
        """Create an Action; execute it right away when no confirmation is required

        Raises:
            ValidationFailed: unknown type or invalid payload (nothing is stored)
        """
        if not user_id:
            raise ValidationFailed("user_id is required")

        parsed = parse_action_payload(action_type, payload)
        prompt = confirmation_prompt or self.default_confirmation_prompt(action_type)

        action = self.db.create_action({
            "user_id": user_id,
            "type": action_type,
            "payload": parsed.model_dump(mode="json", exclude_none=True),
            "status": "pending" if requires_confirmation else "confirmed",
            "confirmation_prompt": prompt,
            "requires_confirmation": requires_confirmation,
            "suggestion_id": suggestion_id,
        })
        self.ledger.append(AuditEntry.success(
            STAGE_ACTION_CREATED,
            f"Action {action.id} ({action_type}) created as {action.status}",
            user_id=user_id,
        ))
        logger.info(f"Created action {action.id} ({action_type}) for user {user_id}, status={action.status}")

        if not requires_confirmation:
            return self._execute(action)

        return ActionOutcome(
            success=True,
            action_id=action.id,
            status=action.status,
            message=prompt,
            confirmation_prompt=prompt,
        )

    def materialize_suggestion(self, suggestion_id: str, user_id: str) -> ActionOutcome:
        """Turn a stored ActionSuggestion with a typed payload into an Action"""
        suggestion = self.db.get_suggestion_by_id(suggestion_id)
        if not suggestion or (suggestion.user_id and suggestion.user_id != user_id):
            raise ActionNotFound(f"Suggestion {suggestion_id} not found")

        if not suggestion.type or not suggestion.payload:
            raise ValidationFailed(f"Suggestion {suggestion_id} has no action type or payload to act on")

        return self.create_action(
            user_id=user_id,
            action_type=suggestion.type,
            payload=suggestion.payload,
            requires_confirmation=suggestion.requires_confirmation is not False,
            confirmation_prompt=suggestion.prompt_text,
            suggestion_id=suggestion.id,
        )

    def respond(self, action_id: str, user_id: str, confirmed: bool) -> ActionOutcome:
        """Apply the user's answer to a pending Action

        Raises:
            ActionNotFound: missing, or owned by another user
            PreconditionFailed: not pending, or another decision won the race
        """
        action = self.db.get_action(action_id, user_id=user_id)
        if not action:
            raise ActionNotFound(f"Action {action_id} not found")

        if action.status != "pending":
            raise PreconditionFailed(
                f"Action {action_id} is {action.status}, not pending",
                current_status=action.status,
            )

        if not confirmed:
            return self._cancel(action)

        claimed = self.db.transition_action_status(action_id, "pending", "confirmed", user_id=user_id)
        if not claimed:
            raise PreconditionFailed(f"Action {action_id} was already decided")

        logger.info(f"Action {action_id} confirmed by user {user_id}")
        return self._execute(claimed)

    def _cancel(self, action: Action) -> ActionOutcome:
        cancelled = self.db.transition_action_status(
            action.id,
            "pending",
            "cancelled",
            updates={"executed_at": self.db.now().isoformat()},
            user_id=action.user_id,
        )
        if not cancelled:
            raise PreconditionFailed(f"Action {action.id} was already decided")

        self.ledger.append(AuditEntry.success(
            STAGE_ACTION_CANCELLED,
            f"Action {action.id} ({action.type}) cancelled by user",
            user_id=action.user_id,
        ))
        logger.info(f"Action {action.id} cancelled by user {action.user_id}")

        return ActionOutcome(
            success=True,
            action_id=action.id,
            status="cancelled",
            message="Action cancelled",
        )

    def _execute(self, action: Action) -> ActionOutcome:
        result = self.executor.execute(action)
        final_status = "executed" if result.success else "failed"

        # The effect has already happened; the audit entry is written even if this update fails
        try:
            updated = self.db.transition_action_status(
                action.id,
                "confirmed",
                final_status,
                updates={"executed_at": self.db.now().isoformat()},
            )
            if not updated:
                logger.warning(f"Action {action.id} left 'confirmed' before its result was recorded")
        except Exception as e:
            logger.error(f"Failed to record {final_status} status for action {action.id}: {e}", exc_info=True)

        if result.success:
            self.ledger.append(AuditEntry.success(
                STAGE_ACTION_EXECUTED,
                f"Action {action.id} ({action.type}): {result.message}",
                user_id=action.user_id,
            ))
        else:
            self.ledger.append(AuditEntry.failed(
                STAGE_ACTION_EXECUTED,
                f"Action {action.id} ({action.type}): {result.error or result.message}",
                user_id=action.user_id,
            ))

        return ActionOutcome(
            success=result.success,
            action_id=action.id,
            status=final_status,
            message=result.message if result.success else f"{result.message}: {result.error}",
            execution=result,
        )

    @staticmethod
    def default_confirmation_prompt(action_type: str) -> str:
        return f"Do you want me to {action_type.replace('_', ' ')}?"
