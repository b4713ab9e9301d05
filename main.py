from fastapi import FastAPI, HTTPException, Header, Query
from config import settings
from agents.pipeline_orchestrator import PipelineOrchestrator
from agents.task_scheduler import TaskScheduler
from agents.action_lifecycle import ActionLifecycleManager
from services.database import DatabaseService
from services.audit_ledger import AuditLedger
from schedulers.cron_orchestrator import start_scheduler, stop_scheduler
from models.requests import (
    PipelineRunRequest,
    ActionConfirmationRequest,
    CreateActionRequest,
    MaterializeSuggestionRequest,
)
from models.audit_entry import AuditQuery
from models.errors import ChiefError, ValidationFailed, PreconditionFailed, ActionNotFound
from datetime import datetime
from typing import Optional
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Chief Core",
    version="0.1.0",
    description="Event pipeline, action lifecycle and task scheduler for the Chief assistant"
)

# Shared services (the Supabase client is created on first use)
db = DatabaseService()
ledger = AuditLedger(db=db)
pipeline = PipelineOrchestrator(db=db, ledger=ledger)
task_scheduler = TaskScheduler(db=db, ledger=ledger)
lifecycle = ActionLifecycleManager(db=db, ledger=ledger)

# Set on startup when the in-process cron orchestrator runs
scheduler = None


def _require_cron_key(x_api_key: Optional[str]):
    if x_api_key != settings.CRON_API_KEY:
        logger.warning(f"Unauthorized trigger attempt with key: {x_api_key[:8] if x_api_key else 'None'}...")
        raise HTTPException(status_code=401, detail="Unauthorized")


def _http_error(error: ChiefError) -> HTTPException:
    """Map the error taxonomy onto status codes"""
    if isinstance(error, ActionNotFound):
        return HTTPException(status_code=404, detail=error.message)
    if isinstance(error, PreconditionFailed):
        return HTTPException(status_code=409, detail=error.message)
    if isinstance(error, ValidationFailed):
        return HTTPException(status_code=422, detail=error.message)
    return HTTPException(status_code=502, detail=error.message)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "service": "Chief Core",
        "scheduler_running": bool(scheduler and scheduler.running),
    }


@app.post("/pipeline/run")
async def run_pipeline(
    request: Optional[PipelineRunRequest] = None,
    x_api_key: str = Header(None, alias="X-API-Key"),
):
    """Process a batch of raw events (cron trigger)

    Requires API key authentication via X-API-Key header.

    Returns:
        {success, processed_count, succeeded, failed, skipped, outcomes}
    """
    _require_cron_key(x_api_key)

    try:
        limit = request.limit if request else None
        logger.info(f"Pipeline run triggered via API (limit={limit})")
        result = pipeline.run_batch(limit=limit)
        return {"success": True, **result.model_dump(mode="json")}
    except ChiefError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error in pipeline run: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/pipeline/events/{event_id}")
async def process_single_event(event_id: str):
    """Process a specific raw event by ID

    Returns:
        The event outcome; 'skipped' when the event is not raw
    """
    try:
        logger.info(f"Processing single event via API: {event_id}")
        outcome = pipeline.process_event(event_id)
    except Exception as e:
        logger.error(f"Error processing event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    if outcome is None:
        raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
    return outcome.model_dump(mode="json")


@app.post("/scheduler/run")
async def run_task_scheduler(x_api_key: str = Header(None, alias="X-API-Key")):
    """Dispatch due scheduled tasks (cron trigger)

    Requires API key authentication via X-API-Key header.
    """
    _require_cron_key(x_api_key)

    try:
        logger.info("Task scheduler run triggered via API")
        result = task_scheduler.run_due_tasks()
        return {"success": True, **result.model_dump(mode="json")}
    except Exception as e:
        logger.error(f"Error in task scheduler run: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/actions")
async def create_action(request: CreateActionRequest):
    """Create an Action; it runs immediately when no confirmation is required"""
    try:
        outcome = lifecycle.create_action(
            user_id=request.user_id,
            action_type=request.type,
            payload=request.payload,
            requires_confirmation=request.requires_confirmation,
            confirmation_prompt=request.confirmation_prompt,
        )
        return outcome.model_dump(mode="json", exclude_none=True)
    except ChiefError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error creating action: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/actions/confirm")
async def confirm_action(request: ActionConfirmationRequest):
    """Answer a pending Action's confirmation prompt

    Returns:
        {success, action_id, status, message}
    """
    try:
        logger.info(f"Action {request.action_id} {'confirmed' if request.confirmed else 'rejected'} by {request.user_id}")
        outcome = lifecycle.respond(request.action_id, request.user_id, request.confirmed)
        return {
            "success": outcome.success,
            "action_id": outcome.action_id,
            "status": outcome.status,
            "message": outcome.message,
        }
    except ChiefError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error responding to action {request.action_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/suggestions/{suggestion_id}/materialize")
async def materialize_suggestion(suggestion_id: str, request: MaterializeSuggestionRequest):
    """Turn a stored suggestion into an Action"""
    try:
        outcome = lifecycle.materialize_suggestion(suggestion_id, request.user_id)
        return outcome.model_dump(mode="json", exclude_none=True)
    except ChiefError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Error materializing suggestion {suggestion_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/audit")
async def get_audit_entries(
    raw_event_id: Optional[str] = None,
    user_id: Optional[str] = None,
    stage: Optional[str] = None,
    status: Optional[str] = None,
    since: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=1000),
):
    """Read the audit ledger, newest first"""
    try:
        entries = ledger.query(AuditQuery(
            raw_event_id=raw_event_id,
            user_id=user_id,
            stage=stage,
            status=status,
            since=since,
            limit=limit,
        ))
        return [entry.model_dump(mode="json") for entry in entries]
    except Exception as e:
        logger.error(f"Error querying audit log: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.on_event("startup")
async def startup_event():
    """Start the cron orchestrator in production"""
    global scheduler
    logger.info("Starting Chief Core")

    if settings.ENABLE_SCHEDULER and settings.ENVIRONMENT == "production":
        scheduler = start_scheduler(db=db)
    else:
        logger.info("Cron orchestrator not started. Use /pipeline/run and /scheduler/run manually.")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on server shutdown"""
    global scheduler
    logger.info("Shutting down Chief Core")

    if scheduler:
        stop_scheduler(scheduler)
        scheduler = None


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
