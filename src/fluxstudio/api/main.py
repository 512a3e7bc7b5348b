"""Flux Studio -- FastAPI Application.

This module is the single entry point for the web application.  It defines
the FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
- **Model catalog** comes from the global schema registry and is served to
  the frontend, which renders one form field per input parameter.
- **Generation** validates the form values against the model schema,
  calls fal.ai through :class:`~fluxstudio.core.invoker.GenerationInvoker`
  and saves a history record on success.
- **History** goes through :class:`~fluxstudio.history.reconciler.HistoryReconciler`,
  which keeps Supabase and the local cache in step.

Endpoints
---------
========  ==============================  ==================================
Method    Path                            Purpose
========  ==============================  ==================================
GET       ``/api/config``                 Version, models, session user id
GET       ``/api/models``                 Model schema catalog
GET       ``/api/models/{model_id}``      One model schema
POST      ``/api/generate``               Validate, generate, save history
GET       ``/api/history``                Merged generation history
DELETE    ``/api/history/{record_id}``    Delete one of the user's records
DELETE    ``/api/history``                Delete all of the user's records
========  ==============================  ==================================

Usage
-----
CLI (installed entry point)::

    fluxstudio

Direct invocation::

    python -m fluxstudio.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from fluxstudio import __version__
from fluxstudio.api.models import GenerateRequest
from fluxstudio.core.config import config
from fluxstudio.core.invoker import GenerationInvoker
from fluxstudio.core.model_registry import schema_registry
from fluxstudio.core.schema import ModelSchema
from fluxstudio.core.validation import validate_request
from fluxstudio.history.local_store import LocalStorage
from fluxstudio.history.reconciler import HistoryReconciler
from fluxstudio.history.records import GenerationOutput, GenerationRecord
from fluxstudio.history.remote_store import create_remote_store
from fluxstudio.history.session import SessionContext

# Configure logging
logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application lifecycle -- session, history and provider setup.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Loads (or creates) the device session from local storage, connects
        the remote history store when Supabase is configured, and stores
        the session, reconciler and invoker on ``app.state``.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    storage = LocalStorage(config.local_storage_path)
    app.state.session = SessionContext.from_storage(storage)
    app.state.reconciler = HistoryReconciler(await create_remote_store(config))
    app.state.invoker = GenerationInvoker()
    logger.info(
        f"Session {app.state.session.user_id} ready "
        f"({len(schema_registry)} models, remote history "
        f"{'on' if app.state.reconciler.remote_enabled else 'off'})"
    )

    yield


app = FastAPI(
    title="Flux Studio",
    description="Schema-driven Flux image generation with reconciled generation history.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Helpers.
# ---------------------------------------------------------------------------


def _record_json(record: GenerationRecord) -> dict:
    """Serialise a record for the frontend, including the derived owner flag."""
    return {**record.model_dump(mode="json"), "is_current_user": record.is_current_user}


def _schema_json(schema: ModelSchema) -> dict:
    return schema.model_dump(mode="json", exclude_none=True)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/api/config")
async def get_config(request: Request) -> dict:
    """Return the application configuration for the frontend.

    Returns:
        Dictionary with ``version``, ``models``, ``user_id``,
        ``remote_history`` and ``has_default_key``.
    """
    return {
        "version": __version__,
        "models": [_schema_json(s) for s in schema_registry.list_schemas()],
        "user_id": request.app.state.session.user_id,
        "remote_history": request.app.state.reconciler.remote_enabled,
        "has_default_key": bool(config.fal_key),
    }


@app.get("/api/models")
async def list_models() -> dict:
    """Return every registered model schema in catalog order."""
    return {"models": [_schema_json(s) for s in schema_registry.list_schemas()]}


@app.get("/api/models/{model_id:path}")
async def get_model(model_id: str) -> dict:
    """Return one model schema.

    Raises:
        HTTPException: 404 if the model is not registered.
    """
    info = schema_registry.get_model_info(model_id)
    if info is None:
        raise HTTPException(status_code=404, detail=f"Unknown model: {model_id}")
    return info


@app.post("/api/generate")
async def generate_image(req: GenerateRequest, request: Request) -> dict:
    """Generate an image and record it in the history.

    This endpoint:

    1. Resolves the model schema.
    2. Validates and fills defaults for the raw input.
    3. Calls the provider (missing credentials fail without a network call).
    4. On success, creates a GenerationRecord and saves it.

    Provider failures are not HTTP errors: the response carries
    ``success: false`` with ``error`` and ``error_code``.

    Args:
        req: Validated :class:`GenerateRequest` payload.

    Returns:
        The generation result; on success also the saved ``record``.

    Raises:
        HTTPException: 400 for an unknown model or invalid parameters
            (``detail.violations`` lists every problem).
    """
    schema = schema_registry.find(req.model_id)
    if schema is None:
        raise HTTPException(status_code=400, detail=f"Unknown model: {req.model_id}")

    validation = validate_request(schema, req.input)
    if not validation.ok:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "Invalid parameters",
                "violations": [v.to_dict() for v in validation.violations],
            },
        )

    parameters = validation.parameters or {}
    invoker: GenerationInvoker = request.app.state.invoker
    result = await invoker.invoke(schema, parameters, api_key=req.api_key or config.fal_key)
    if not result.success:
        return result.model_dump(mode="json")

    record = GenerationRecord(
        model_id=schema.id,
        model_name=schema.name,
        prompt=str(parameters.get("prompt", "")),
        parameters=parameters,
        output=GenerationOutput(
            images=result.images,
            timings=result.timings,
            seed=result.seed,
            has_nsfw_concepts=result.has_nsfw_concepts,
        ),
    )
    reconciler: HistoryReconciler = request.app.state.reconciler
    saved = await reconciler.save(request.app.state.session, record)

    return {**result.model_dump(mode="json"), "record": _record_json(saved)}


@app.get("/api/history")
async def get_history(
    request: Request,
    limit: int | None = None,
    current_user_only: bool = False,
) -> dict:
    """Return the merged generation history, newest first.

    Args:
        limit: Maximum number of remote records (defaults to
            ``FLUXSTUDIO_HISTORY_FETCH_LIMIT``, capped at 200).
        current_user_only: Only return the session user's records.

    Returns:
        Dictionary with ``total`` and ``generations``.
    """
    resolved_limit = max(1, min(limit or config.history_fetch_limit, 200))
    reconciler: HistoryReconciler = request.app.state.reconciler
    records = await reconciler.fetch(
        request.app.state.session,
        limit=resolved_limit,
        current_user_only=current_user_only,
    )
    return {"total": len(records), "generations": [_record_json(r) for r in records]}


@app.delete("/api/history/{record_id}")
async def delete_history_record(record_id: str, request: Request) -> dict:
    """Delete one of the session user's records from both stores."""
    reconciler: HistoryReconciler = request.app.state.reconciler
    await reconciler.delete(request.app.state.session, record_id)
    return {"success": True, "deleted": record_id}


@app.delete("/api/history")
async def clear_history(request: Request) -> dict:
    """Delete all of the session user's records and empty the local cache."""
    reconciler: HistoryReconciler = request.app.state.reconciler
    await reconciler.clear_all(request.app.state.session)
    return {"success": True}


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~fluxstudio.core.config.config`
    (``FLUXSTUDIO_SERVER_HOST`` and ``FLUXSTUDIO_SERVER_PORT``).  Defaults to
    ``0.0.0.0:7860``.
    """
    import uvicorn

    uvicorn.run(
        "fluxstudio.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
