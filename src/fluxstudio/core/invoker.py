"""Generation Invoker: one request/response exchange with fal.ai.

:class:`GenerationInvoker` submits a validated parameter mapping to the
provider's queue, relays queue/progress events to an optional callback, and
converts whatever comes back into a discriminated result:

- :class:`GenerationSuccess` -- first image, full image list, seed, request
  id, timing breakdown and NSFW-concept flags
- :class:`GenerationFailure` -- human-readable message and optional error
  code

Provider errors are never raised to the caller.

Error Classification
--------------------
:func:`classify_provider_error` applies these checks in order:

(a) structured error with status 403 whose body ``detail`` contains
    ``"Exhausted balance"`` -> ``BALANCE_EXHAUSTED``
(b) error text containing both ``403`` and ``"Exhausted balance"``
    -> ``BALANCE_EXHAUSTED``
(c) a JSON object embedded in the error text whose ``detail`` contains
    ``"Exhausted balance"`` -> ``BALANCE_EXHAUSTED``
(d) anything else -> generic failure with the error's own message, or
    :data:`GENERIC_FAILURE_MESSAGE` when there is none

``fal_client`` raises its own error type and chains the underlying
``httpx.HTTPStatusError``; status and body are looked up on the error
itself first, then on its ``response``, then on the chained cause.

Usage
-----
::

    invoker = GenerationInvoker()
    result = await invoker.invoke(schema, parameters, api_key="...")
    if result.success:
        print(result.image.url)
    else:
        print(result.error, result.error_code)
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from typing import Any, Literal, Protocol

import fal_client
from pydantic import BaseModel, Field

from fluxstudio.history.records import Image

from .schema import ModelSchema

logger = logging.getLogger(__name__)

BALANCE_MARKER = "Exhausted balance"
BALANCE_EXHAUSTED = "BALANCE_EXHAUSTED"
MISSING_CREDENTIAL = "MISSING_CREDENTIAL"

BALANCE_EXHAUSTED_MESSAGE = (
    "Your fal.ai account balance is exhausted. "
    "Please top up at fal.ai/dashboard/billing and try again."
)
MISSING_CREDENTIAL_MESSAGE = "Please set your FAL.AI API key first"
NO_IMAGE_MESSAGE = "no image generated"
GENERIC_FAILURE_MESSAGE = "Failed to generate image"

_EMBEDDED_JSON = re.compile(r"\{.*\}", re.DOTALL)


# ---------------------------------------------------------------------------
# Result and progress types.
# ---------------------------------------------------------------------------


class GenerationSuccess(BaseModel):
    success: Literal[True] = True
    image: Image
    images: list[Image] = Field(default_factory=list)
    seed: int | None = None
    request_id: str | None = None
    timings: dict[str, Any] = Field(default_factory=dict)
    has_nsfw_concepts: list[bool] = Field(default_factory=list)


class GenerationFailure(BaseModel):
    success: Literal[False] = False
    error: str
    error_code: str | None = None


GenerationResult = GenerationSuccess | GenerationFailure


class ProgressUpdate(BaseModel):
    """One queue/progress notification from the provider.

    Attributes:
        status: ``IN_QUEUE``, ``IN_PROGRESS`` or ``COMPLETED``.
        position: Queue position, only set while queued.
        logs: Log messages reported with this update.
    """

    status: Literal["IN_QUEUE", "IN_PROGRESS", "COMPLETED"]
    position: int | None = None
    logs: list[str] = Field(default_factory=list)


ProgressCallback = Callable[[ProgressUpdate], None]


class RequestHandle(Protocol):
    request_id: str

    def iter_events(self, *, with_logs: bool = False, interval: float = 0.1) -> Any: ...

    async def get(self) -> dict[str, Any]: ...


class ProviderClient(Protocol):
    async def submit(self, application: str, arguments: dict[str, Any]) -> RequestHandle: ...


ClientFactory = Callable[[str], ProviderClient]


def default_client_factory(api_key: str) -> ProviderClient:
    """Create a fal.ai async client bound to ``api_key``."""
    return fal_client.AsyncClient(key=api_key)


# ---------------------------------------------------------------------------
# Error classification.
# ---------------------------------------------------------------------------


def _balance_exhausted() -> GenerationFailure:
    return GenerationFailure(error=BALANCE_EXHAUSTED_MESSAGE, error_code=BALANCE_EXHAUSTED)


def _error_status(error: BaseException) -> int | None:
    for source in (error, getattr(error, "response", None), error.__cause__):
        if source is None:
            continue
        for attr in ("status_code", "status"):
            status = getattr(source, attr, None)
            if isinstance(status, int):
                return status
        response = getattr(source, "response", None)
        status = getattr(response, "status_code", None)
        if isinstance(status, int):
            return status
    return None


def _error_body(error: BaseException) -> Any:
    body = getattr(error, "body", None)
    if body is not None:
        return body
    for source in (error, error.__cause__):
        response = getattr(source, "response", None)
        if response is None or not hasattr(response, "json"):
            continue
        try:
            return response.json()
        except ValueError:
            continue
    return None


def _error_message(error: BaseException) -> str:
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error)


def _detail_has_marker(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    detail = payload.get("detail")
    return isinstance(detail, str) and BALANCE_MARKER in detail


def classify_provider_error(error: BaseException) -> GenerationFailure:
    """Convert a provider exception into a :class:`GenerationFailure`.

    Args:
        error: Exception raised while talking to the provider.

    Returns:
        GenerationFailure, with ``error_code`` set to ``BALANCE_EXHAUSTED``
        when any of the balance checks match.
    """
    if _error_status(error) == 403 and _detail_has_marker(_error_body(error)):
        return _balance_exhausted()

    message = _error_message(error)
    if "403" in message and BALANCE_MARKER in message:
        return _balance_exhausted()

    match = _EMBEDDED_JSON.search(message)
    if match:
        try:
            if _detail_has_marker(json.loads(match.group(0))):
                return _balance_exhausted()
        except ValueError as parse_error:
            logger.debug(f"Could not parse JSON embedded in provider error: {parse_error}")

    return GenerationFailure(error=message or GENERIC_FAILURE_MESSAGE)


# ---------------------------------------------------------------------------
# Invoker.
# ---------------------------------------------------------------------------


def _to_progress(event: Any) -> ProgressUpdate | None:
    if isinstance(event, fal_client.Queued):
        return ProgressUpdate(status="IN_QUEUE", position=event.position)
    if isinstance(event, fal_client.InProgress):
        return ProgressUpdate(status="IN_PROGRESS", logs=_log_messages(event.logs))
    if isinstance(event, fal_client.Completed):
        return ProgressUpdate(status="COMPLETED", logs=_log_messages(event.logs))
    return None


def _log_messages(logs: list[dict[str, Any]] | None) -> list[str]:
    return [str(entry.get("message", "")) for entry in logs or []]


def log_progress(update: ProgressUpdate) -> None:
    """Default progress callback: write each update to the log."""
    if update.status == "IN_QUEUE":
        logger.info(f"Queue status: {update.status} (position {update.position})")
    else:
        logger.info(f"Queue status: {update.status}")
    for message in update.logs:
        logger.info(f"   {message}")


class GenerationInvoker:
    """Send validated parameters to the provider and normalize the outcome.

    One provider client is created per API key and reused for later calls
    with the same key.

    Attributes
    ----------
    client_factory : ClientFactory
        Builds a provider client for a given API key.  Defaults to
        :func:`default_client_factory`; tests pass in a fake.
    """

    def __init__(self, client_factory: ClientFactory | None = None) -> None:
        self.client_factory = client_factory or default_client_factory
        self._clients: dict[str, ProviderClient] = {}

    def _client_for(self, api_key: str) -> ProviderClient:
        client = self._clients.get(api_key)
        if client is None:
            logger.debug("Creating provider client")
            client = self.client_factory(api_key)
            self._clients[api_key] = client
        return client

    async def invoke(
        self,
        schema: ModelSchema,
        parameters: dict[str, Any],
        api_key: str | None,
        on_progress: ProgressCallback | None = log_progress,
    ) -> GenerationResult:
        """Run one generation.

        Args:
            schema: Schema of the model to call.
            parameters: Output of :func:`~fluxstudio.core.validation.build_request`.
            api_key: Provider credential.  Missing credentials fail before any
                network call.
            on_progress: Receives progress updates in provider order.

        Returns:
            GenerationSuccess or GenerationFailure.
        """
        prompt = str(parameters.get("prompt", ""))
        logger.info(
            f"Starting generation: model={schema.id} prompt={prompt[:50]!r}"
            f"{'...' if len(prompt) > 50 else ''}"
        )

        if not api_key:
            logger.error("No API key provided")
            return GenerationFailure(error=MISSING_CREDENTIAL_MESSAGE, error_code=MISSING_CREDENTIAL)

        try:
            client = self._client_for(api_key)
            handle = await client.submit(schema.id, arguments=parameters)

            async for event in handle.iter_events(with_logs=True):
                update = _to_progress(event)
                if update is not None and on_progress is not None:
                    on_progress(update)

            data = await handle.get() or {}
            images = [Image.model_validate(image) for image in data.get("images") or []]
            request_id = getattr(handle, "request_id", None)
            logger.info(f"Generation complete: request_id={request_id} images={len(images)}")

            if not images:
                logger.error("Provider response contained no image")
                return GenerationFailure(error=NO_IMAGE_MESSAGE)

            return GenerationSuccess(
                image=images[0],
                images=images,
                seed=data.get("seed"),
                request_id=request_id,
                timings=data.get("timings") or {},
                has_nsfw_concepts=data.get("has_nsfw_concepts") or [],
            )
        except Exception as e:
            failure = classify_provider_error(e)
            logger.error(f"Image generation failed ({failure.error_code or 'PROVIDER_FAILURE'}): {e}")
            return failure
