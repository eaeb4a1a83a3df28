"""FastAPI app entrypoint for ops-pilot."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field, field_validator

from ops_pilot.config.settings import Settings, get_settings
from ops_pilot.errors import ConnectorStateError, UnknownConnectorError
from ops_pilot.ingestion.dispatch import dispatch_signal
from ops_pilot.metrics import DashboardMetrics, compute_metrics
from ops_pilot.models import ConnectorState, SourceChannel, Task, TraceEntry
from ops_pilot.orchestrator import SubmitOutcome
from ops_pilot.runtime import OpsRuntime, build_runtime

logger = logging.getLogger(__name__)


class DispatchRequest(BaseModel):
    source: SourceChannel
    content: str
    sender: str | None = None

    @field_validator("source", mode="before")
    @classmethod
    def _normalize_source(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class DispatchResponse(BaseModel):
    accepted: bool
    task: Task | None = None


class RunResponse(BaseModel):
    task_id: str
    accepted: bool
    reason: str | None = None
    backend_mode: str | None = None
    task: Task | None = None


class ConnectRequest(BaseModel):
    account: str = Field(min_length=1)
    access_token: str | None = None


class AutoTriggerRequest(BaseModel):
    enabled: bool


class SimulationRequest(BaseModel):
    enabled: bool


class CredentialRequest(BaseModel):
    api_key: str | None = None


class BackendStatus(BaseModel):
    mode: str
    credential_source: str


def create_app(
    *,
    runtime: OpsRuntime | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or (runtime.settings if runtime else get_settings())
    logging.getLogger("ops_pilot").setLevel(settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.runtime.start()
        yield
        await app.state.runtime.shutdown()

    app = FastAPI(title=settings.app_name, debug=settings.app_debug, lifespan=lifespan)
    app.state.runtime = runtime or build_runtime(settings)

    def _runtime(request: Request) -> OpsRuntime:
        return request.app.state.runtime

    def _connector_key(connector_id: str) -> SourceChannel:
        try:
            return SourceChannel.parse(connector_id)
        except ValueError as exc:
            raise HTTPException(status_code=404, detail="Connector not found") from exc

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name, "env": settings.app_env}

    @app.get("/tasks", response_model=list[Task])
    def list_tasks(request: Request) -> list[Task]:
        return _runtime(request).store.list_tasks()

    @app.post("/tasks", response_model=DispatchResponse)
    async def create_task(payload: DispatchRequest, request: Request) -> DispatchResponse:
        runtime = _runtime(request)
        task = dispatch_signal(
            runtime.store,
            runtime.trace,
            payload.source,
            payload.content,
            sender=payload.sender,
        )
        return DispatchResponse(accepted=task is not None, task=task)

    @app.delete("/tasks")
    async def clear_tasks(request: Request) -> dict[str, str]:
        _runtime(request).clear()
        return {"status": "cleared"}

    @app.get("/tasks/{task_id}", response_model=Task)
    def get_task(task_id: str, request: Request) -> Task:
        record = _runtime(request).store.get(task_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return record

    @app.post("/tasks/{task_id}/run", response_model=RunResponse)
    async def run_task(task_id: str, request: Request) -> RunResponse:
        outcome = await _runtime(request).orchestrator.submit(task_id)
        return _run_response(outcome)

    @app.post("/tasks/{task_id}/retry", response_model=RunResponse)
    async def retry_task(task_id: str, request: Request) -> RunResponse:
        outcome = await _runtime(request).orchestrator.retry(task_id)
        return _run_response(outcome)

    @app.get("/trace", response_model=list[TraceEntry])
    def get_trace(request: Request) -> list[TraceEntry]:
        return list(_runtime(request).trace.entries())

    @app.get("/connectors", response_model=list[ConnectorState])
    def list_connectors(request: Request) -> list[ConnectorState]:
        return _runtime(request).registry.list_connectors()

    @app.post("/connectors/{connector_id}/connect", response_model=ConnectorState)
    async def connect(connector_id: str, payload: ConnectRequest, request: Request) -> ConnectorState:
        key = _connector_key(connector_id)
        try:
            return _runtime(request).registry.connect(
                key, account=payload.account, credential=payload.access_token
            )
        except UnknownConnectorError as exc:
            raise HTTPException(status_code=404, detail="Connector not found") from exc

    @app.post("/connectors/{connector_id}/disconnect", response_model=ConnectorState)
    async def disconnect(connector_id: str, request: Request) -> ConnectorState:
        key = _connector_key(connector_id)
        try:
            return _runtime(request).registry.disconnect(key)
        except UnknownConnectorError as exc:
            raise HTTPException(status_code=404, detail="Connector not found") from exc

    @app.put("/connectors/{connector_id}/auto-trigger", response_model=ConnectorState)
    async def set_auto_trigger(
        connector_id: str, payload: AutoTriggerRequest, request: Request
    ) -> ConnectorState:
        key = _connector_key(connector_id)
        try:
            return _runtime(request).registry.set_auto_trigger(key, payload.enabled)
        except UnknownConnectorError as exc:
            raise HTTPException(status_code=404, detail="Connector not found") from exc
        except ConnectorStateError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

    @app.put("/simulation")
    async def set_simulation(payload: SimulationRequest, request: Request) -> dict[str, bool]:
        supervisor = _runtime(request).supervisor
        supervisor.set_simulation_enabled(payload.enabled)
        return {"enabled": supervisor.simulation_enabled}

    @app.get("/backend", response_model=BackendStatus)
    def backend_status(request: Request) -> BackendStatus:
        return _backend_status(_runtime(request))

    @app.put("/backend/credential", response_model=BackendStatus)
    def set_backend_credential(payload: CredentialRequest, request: Request) -> BackendStatus:
        runtime = _runtime(request)
        runtime.selector.set_user_api_key(payload.api_key)
        return _backend_status(runtime)

    @app.get("/metrics", response_model=DashboardMetrics)
    def metrics(request: Request) -> DashboardMetrics:
        runtime = _runtime(request)
        return compute_metrics(runtime.store, runtime.registry)

    return app


def _run_response(outcome: SubmitOutcome) -> RunResponse:
    if not outcome.accepted and outcome.reason == "not_found":
        raise HTTPException(status_code=404, detail="Task not found")
    return RunResponse(
        task_id=outcome.task_id,
        accepted=outcome.accepted,
        reason=outcome.reason,
        backend_mode=outcome.backend_mode,
        task=outcome.task,
    )


def _backend_status(runtime: OpsRuntime) -> BackendStatus:
    mode, origin = runtime.selector.describe()
    return BackendStatus(mode=mode, credential_source=origin)


app = create_app()
