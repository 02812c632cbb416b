"""FastAPI application exposing the kinetic monitor over HTTP."""

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Any, AsyncGenerator, AsyncIterator, Dict, Literal, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, field_validator

from ..codec import OutboundCommand
from ..config import MonitorSettings
from ..display import DisplayPreferences, UnitSystem, snapshot_view
from ..energy import energy_report
from ..errors import SessionClosedError, UnknownProfileError
from ..events import Diagnostic
from ..monitor import KineticMonitor
from ..physics import KineticSnapshot
from ..profiles import PROFILES
from .stream import KineticStream

INDEX_PAGE = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8"/>
    <title>Kinetic Dashboard</title>
    <style>
      body { font-family: sans-serif; background: #0f1115; color: #e6e6e6; padding: 20px; }
      .card { background: #1c1f26; padding: 10px; margin-bottom: 10px; border-radius: 6px; }
      .muted { color: #8c8c8c; }
      button { margin-right: 8px; }
    </style>
  </head>
  <body>
    <h1>Kinetic Dashboard</h1>
    <p class="muted" id="status">Waiting for telemetry...</p>
    <div class="card"><pre id="state"></pre></div>
    <button onclick="send('pulse')">Pulse</button>
    <button onclick="send('open-window')">Open window</button>
    <script>
      async function send(command) {
        await fetch('/api/commands', {
          method: 'POST',
          headers: {'Content-Type': 'application/json'},
          body: JSON.stringify({command}),
        });
      }
      const source = new EventSource('/api/kinetics/stream');
      source.addEventListener('kinetics', (message) => {
        const payload = JSON.parse(message.data);
        document.getElementById('status').textContent = payload.view.status;
        document.getElementById('state').textContent = JSON.stringify(payload.kinetics, null, 2);
      });
    </script>
  </body>
</html>
"""


def sse_frame(event: str, payload: Dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(payload)}\n\n"


class CommandRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    command: Literal["pulse", "open-window"]


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str

    @field_validator("key")
    @classmethod
    def validate_key(cls, value: str) -> str:
        normalised = value.strip().lower().replace("-", "_")
        if normalised not in PROFILES:
            raise ValueError("Unknown device profile")
        return normalised


class DisplayUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    units: Optional[UnitSystem] = None


class DashboardState:
    def __init__(self, monitor: KineticMonitor) -> None:
        self.monitor = monitor
        self.display = DisplayPreferences()
        self.stream = KineticStream(monitor)
        self._lock = asyncio.Lock()

    def kinetics_payload(self, snapshot: Optional[KineticSnapshot] = None) -> Dict[str, Any]:
        if snapshot is None:
            snapshot = self.monitor.latest
        return {
            "kinetics": snapshot.as_dict(),
            "view": snapshot_view(snapshot, self.display),
            "profile": self.profile_payload(),
            "session": self.monitor.session_state.value,
        }

    async def event_frames(self) -> AsyncGenerator[str, None]:
        """Server-sent event frames for every monitor event, in arrival order."""

        async with contextlib.aclosing(self.stream.subscribe()) as subscription:
            async for event in subscription:
                if isinstance(event, Diagnostic):
                    yield sse_frame("diagnostic", event.as_dict())
                else:
                    yield sse_frame("kinetics", self.kinetics_payload(event.state))

    def profile_payload(self) -> Dict[str, Any]:
        return {"key": self.monitor.profile_key, **self.monitor.profile.as_dict()}

    async def select_profile(self, payload: ProfileUpdate) -> Dict[str, Any]:
        async with self._lock:
            try:
                self.monitor.select_profile(payload.key)
            except UnknownProfileError as exc:
                raise HTTPException(status_code=422, detail=str(exc))
            return {"profile": self.profile_payload()}

    async def update_display(self, payload: DisplayUpdate) -> Dict[str, Any]:
        async with self._lock:
            self.display.update(units=payload.units)
            return {"display": self.display.as_dict()}


def create_app(
    settings: Optional[MonitorSettings] = None,
    *,
    monitor: Optional[KineticMonitor] = None,
) -> FastAPI:
    state = DashboardState(monitor or KineticMonitor(settings or MonitorSettings.from_env()))

    @contextlib.asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await state.stream.start()
        try:
            yield
        finally:
            await state.stream.stop()

    app = FastAPI(title="Kinetic Dashboard", version="1.0.0", lifespan=lifespan)
    app.state.dashboard = state

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", response_class=HTMLResponse)
    async def index() -> HTMLResponse:
        return HTMLResponse(INDEX_PAGE)

    @app.get("/api/kinetics")
    async def kinetics() -> Dict[str, Any]:
        return state.kinetics_payload()

    @app.get("/api/kinetics/stream")
    async def kinetics_stream() -> StreamingResponse:
        return StreamingResponse(state.event_frames(), media_type="text/event-stream")

    @app.get("/api/energy")
    async def energy() -> Dict[str, Any]:
        return {"energy": energy_report(state.monitor.latest.accumulated_work_joules).as_dict()}

    @app.post("/api/commands", status_code=202)
    async def commands(payload: CommandRequest) -> Dict[str, Any]:
        try:
            await state.monitor.send(OutboundCommand(payload.command))
        except SessionClosedError as exc:
            raise HTTPException(status_code=503, detail=str(exc))
        return {"sent": payload.command}

    @app.get("/api/profiles")
    async def profiles() -> Dict[str, Any]:
        return {"profiles": {key: profile.as_dict() for key, profile in PROFILES.items()}}

    @app.get("/api/profile")
    async def profile() -> Dict[str, Any]:
        return {"profile": state.profile_payload()}

    @app.post("/api/profile")
    async def select_profile(payload: ProfileUpdate) -> Dict[str, Any]:
        return await state.select_profile(payload)

    @app.get("/api/display")
    async def display() -> Dict[str, Any]:
        return {"display": state.display.as_dict()}

    @app.post("/api/display")
    async def update_display(payload: DisplayUpdate) -> Dict[str, Any]:
        return await state.update_display(payload)

    return app
