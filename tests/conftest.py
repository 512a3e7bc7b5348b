"""Shared pytest fixtures for Flux Studio tests."""

import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from fluxstudio.core.config import FluxStudioConfig
from fluxstudio.core.schema import ModelSchema
from fluxstudio.history.local_store import LocalStorage
from fluxstudio.history.reconciler import HistoryReconciler
from fluxstudio.history.records import GenerationOutput, GenerationRecord, Image
from fluxstudio.history.remote_store import GenerationStore
from fluxstudio.history.session import SessionContext


class InMemoryGenerationStore(GenerationStore):
    """Remote store double backed by a list of rows.

    Set ``failing`` to the names of operations that should raise, e.g.
    ``{"insert"}`` or ``{"insert", "select_recent", "delete", "delete_all"}``.
    """

    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failing:
            raise ConnectionError(f"remote store unavailable during {operation}")

    async def insert(self, row: dict[str, Any]) -> None:
        self._maybe_fail("insert")
        self.rows.append(dict(row))

    async def select_recent(self, limit: int, user_id: str | None = None) -> list[dict[str, Any]]:
        self._maybe_fail("select_recent")
        rows = [r for r in self.rows if user_id is None or r["user_id"] == user_id]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return rows[:limit]

    async def delete(self, record_id: str, user_id: str) -> None:
        self._maybe_fail("delete")
        self.rows = [r for r in self.rows if not (r["id"] == record_id and r["user_id"] == user_id)]

    async def delete_all(self, user_id: str) -> None:
        self._maybe_fail("delete_all")
        self.rows = [r for r in self.rows if r["user_id"] != user_id]


class FakeRequestHandle:
    """Stand-in for a fal.ai request handle."""

    def __init__(
        self,
        result: dict[str, Any] | None = None,
        events: list[Any] | None = None,
        error: BaseException | None = None,
        request_id: str = "req-123",
    ) -> None:
        self.result = result
        self.events = events or []
        self.error = error
        self.request_id = request_id

    async def iter_events(self, *, with_logs: bool = False, interval: float = 0.1):
        for event in self.events:
            yield event

    async def get(self) -> dict[str, Any]:
        if self.error is not None:
            raise self.error
        return self.result or {}


class FakeProviderClient:
    """Stand-in for ``fal_client.AsyncClient`` that records submissions."""

    def __init__(self, handle: FakeRequestHandle) -> None:
        self.handle = handle
        self.submissions: list[tuple[str, dict[str, Any]]] = []
        self.api_keys: list[str] = []

    async def submit(self, application: str, arguments: dict[str, Any]) -> FakeRequestHandle:
        self.submissions.append((application, arguments))
        return self.handle


def make_provider_result(num_images: int = 1) -> dict[str, Any]:
    """Build a provider response payload with ``num_images`` images."""
    return {
        "images": [
            {
                "url": f"https://fal.media/files/image-{i}.jpg",
                "width": 1024,
                "height": 768,
                "content_type": "image/jpeg",
            }
            for i in range(num_images)
        ],
        "seed": 1234,
        "timings": {"inference": 1.25},
        "has_nsfw_concepts": [False] * num_images,
    }


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> FluxStudioConfig:
    """Create a test configuration rooted in a temporary directory.

    Supabase is left unconfigured so nothing tries to reach the network.
    """
    return FluxStudioConfig(
        _env_file=None,
        fal_key="test-key",
        supabase_url=None,
        supabase_key=None,
        data_dir=str(temp_dir / "data"),
    )


@pytest.fixture
def local_storage(temp_dir: Path) -> LocalStorage:
    return LocalStorage(temp_dir / "local_storage.json")


@pytest.fixture
def session(local_storage: LocalStorage) -> SessionContext:
    return SessionContext.from_storage(local_storage)


@pytest.fixture
def remote_store() -> InMemoryGenerationStore:
    return InMemoryGenerationStore()


@pytest.fixture
def reconciler(remote_store: InMemoryGenerationStore) -> HistoryReconciler:
    return HistoryReconciler(remote_store)


@pytest.fixture
def make_record():
    """Factory for generation records with increasing timestamps."""
    counter = {"n": 0}

    def _make(record_id: str | None = None, user_id: str | None = None, **overrides) -> GenerationRecord:
        counter["n"] += 1
        fields: dict[str, Any] = {
            "model_id": "fal-ai/flux-pro/v1.1",
            "model_name": "Flux 1.1 Pro",
            "prompt": f"prompt {counter['n']}",
            "parameters": {"prompt": f"prompt {counter['n']}", "num_images": 1},
            "output": GenerationOutput(
                images=[Image(url=f"https://fal.media/{counter['n']}.jpg", width=512, height=512)],
                seed=counter["n"],
                has_nsfw_concepts=[False],
            ),
            "timestamp": 1_700_000_000.0 + counter["n"],
            "user_id": user_id,
        }
        if record_id is not None:
            fields["id"] = record_id
        fields.update(overrides)
        return GenerationRecord(**fields)

    return _make


@pytest.fixture
def sample_schema() -> ModelSchema:
    """Schema with a required prompt and a bounded, defaulted num_images."""
    return ModelSchema.model_validate(
        {
            "name": "Sample",
            "id": "fal-ai/sample",
            "input_schema": [
                {"key": "prompt", "type": "string", "required": True},
                {
                    "key": "num_images",
                    "type": "number",
                    "default": 1,
                    "validation": {"min": 1, "max": 4},
                },
            ],
        }
    )


@pytest.fixture
def provider_result() -> dict[str, Any]:
    return make_provider_result()


@pytest.fixture
def fake_provider():
    """Factory returning ``(client_factory, client)`` for GenerationInvoker.

    The factory records every API key it was called with in
    ``client_factory.keys``.
    """

    def _build(
        result: dict[str, Any] | None = None,
        events: list[Any] | None = None,
        error: BaseException | None = None,
        request_id: str = "req-123",
    ):
        client = FakeProviderClient(
            FakeRequestHandle(result=result, events=events, error=error, request_id=request_id)
        )

        def client_factory(api_key: str) -> FakeProviderClient:
            client_factory.keys.append(api_key)
            return client

        client_factory.keys = []
        return client_factory, client

    return _build


@pytest.fixture
def provider_client() -> FakeProviderClient:
    """Provider double used by the API tests; mutate ``handle`` to change the outcome."""
    return FakeProviderClient(FakeRequestHandle(result=make_provider_result()))


@pytest.fixture
def test_client(
    monkeypatch,
    test_config: FluxStudioConfig,
    remote_store: InMemoryGenerationStore,
    provider_client: FakeProviderClient,
):
    """FastAPI TestClient wired to temporary storage and test doubles.

    The lifespan runs against ``test_config`` and the app state is then
    replaced so no request reaches Supabase or fal.ai.
    """
    from fastapi.testclient import TestClient

    from fluxstudio.api import main
    from fluxstudio.core.invoker import GenerationInvoker

    monkeypatch.setattr(main, "config", test_config)

    with TestClient(main.app) as client:
        main.app.state.session = SessionContext.from_storage(LocalStorage(test_config.local_storage_path))
        main.app.state.reconciler = HistoryReconciler(remote_store)

        def client_factory(api_key: str) -> FakeProviderClient:
            provider_client.api_keys.append(api_key)
            return provider_client

        main.app.state.invoker = GenerationInvoker(client_factory)
        yield client
