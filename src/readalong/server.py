# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Web server bridging a read-along session to browser clients.
Exposes the session operations over a WebSocket and pushes every session
event back to all connected clients.
"""

import asyncio
import contextlib
import json
import logging
from typing import Any

from aiohttp import web

from .supervisor import SessionEvent, SessionSupervisor

logger = logging.getLogger(__name__)


def _int_value(value: object, default: int = 0) -> int:
    """Coerce a JSON payload value to int, falling back to default."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default


class WebServer:
    """
    Serves session state and manages WebSocket connections.
    """

    def __init__(
        self,
        session: SessionSupervisor,
        host: str = "127.0.0.1",
        port: int = 8000
    ) -> None:
        self.session: SessionSupervisor = session
        self.host: str = host
        self.port: int = port
        self.app: web.Application = web.Application()
        self.websockets: set[web.WebSocketResponse] = set()
        self.runner: web.AppRunner | None = None
        self.reference_text: str = ""
        self._tasks: set[asyncio.Task[None]] = set()

        self._unsubscribe = session.subscribe(self._on_session_event)
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up HTTP routes."""
        self.app.router.add_get('/state', self._handle_get_state)
        self.app.router.add_get('/ws', self._handle_websocket)
        self.app.router.add_get('/audio-devices', self._handle_get_audio_devices)

    async def start(self) -> None:
        """Start the web server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info("Server listening on http://%s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Stop the web server and close client connections."""
        self._unsubscribe()
        for ws in list(self.websockets):
            with contextlib.suppress(Exception):
                await ws.close()
        self.websockets.clear()
        if self.runner:
            await self.runner.cleanup()
            self.runner = None

    def state_message(self) -> dict[str, Any]:
        """Current session outputs, as sent in the init message and /state."""
        state = self.session.snapshot()
        state["reference"] = self.reference_text
        return state

    async def _handle_get_state(self, request: web.Request) -> web.Response:
        """Current session outputs as JSON."""
        return web.json_response(self.state_message())

    async def _handle_get_audio_devices(self, request: web.Request) -> web.Response:
        """Get list of available audio input devices."""
        try:
            from .audio import input_devices
            devices = await asyncio.get_running_loop().run_in_executor(None, input_devices)
            return web.json_response({"status": "ok", "devices": devices})
        except Exception as e:
            logger.error("Error listing audio devices: %s", e)
            return web.json_response(
                {"status": "error", "message": str(e)},
                status=500
            )

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Handle WebSocket connections for real-time updates."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self.websockets.add(ws)
        logger.info("WebSocket connected. Total: %d", len(self.websockets))

        try:
            await ws.send_json({"type": "init", **self.state_message()})

            async for msg in ws:
                if msg.type == web.WSMsgType.TEXT:
                    try:
                        data = json.loads(msg.data)
                    except json.JSONDecodeError:
                        logger.warning("Ignoring malformed WebSocket message")
                        continue
                    if isinstance(data, dict):
                        await self._handle_ws_message(ws, data)
                elif msg.type == web.WSMsgType.ERROR:
                    logger.warning("WebSocket error: %s", ws.exception())
        finally:
            self.websockets.discard(ws)
            logger.info("WebSocket disconnected. Total: %d", len(self.websockets))

        return ws

    async def _handle_ws_message(self, ws: web.WebSocketResponse, data: dict[str, object]) -> None:
        """Handle incoming WebSocket messages using dispatch pattern."""
        msg_type: object | None = data.get("type")
        if not msg_type:
            return

        # Message type to handler dispatch
        handlers: dict[str, object] = {
            "start": self._on_start_message,
            "stop": self._on_stop_message,
            "force_stop": self._on_force_stop_message,
            "resume": self._on_resume_message,
            "jump_to": self._on_jump_to_message,
            "device_changed": self._on_device_changed_message,
            "dismiss": self._on_dismiss_message,
        }

        handler: object | None = handlers.get(msg_type)  # type: ignore[arg-type]
        if handler:
            await handler(ws, data)  # type: ignore[operator]
        else:
            logger.warning("Unhandled WebSocket message: %s", msg_type)

    async def _on_start_message(self, _ws: web.WebSocketResponse, data: dict[str, object]) -> None:
        """Start a session on new reference text."""
        self.reference_text = str(data.get("text", ""))
        cursor = _int_value(data.get("charOffset", 0))
        self.session.start(self.reference_text, cursor=cursor)

    async def _on_stop_message(self, _ws: web.WebSocketResponse, _data: dict[str, object]) -> None:
        self.session.stop()

    async def _on_force_stop_message(self, _ws: web.WebSocketResponse, _data: dict[str, object]) -> None:
        self.session.force_stop()

    async def _on_resume_message(self, _ws: web.WebSocketResponse, _data: dict[str, object]) -> None:
        self.session.resume()

    async def _on_jump_to_message(self, _ws: web.WebSocketResponse, data: dict[str, object]) -> None:
        """Handle jump to character offset message."""
        self.session.jump_to(_int_value(data.get("charOffset", 0)))

    async def _on_device_changed_message(self, _ws: web.WebSocketResponse, _data: dict[str, object]) -> None:
        self.session.device_changed()

    async def _on_dismiss_message(self, _ws: web.WebSocketResponse, _data: dict[str, object]) -> None:
        self.session.dismiss()

    def _on_session_event(self, event: SessionEvent) -> None:
        """Forward a session event to every client."""
        if not self.websockets:
            return
        task = asyncio.get_running_loop().create_task(self.broadcast(event.to_dict()))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def broadcast(self, message: dict[str, Any]) -> None:
        """Send a message to all connected WebSocket clients."""
        if not self.websockets:
            return

        data = json.dumps(message, ensure_ascii=False)
        closed: list[web.WebSocketResponse] = []
        for ws in list(self.websockets):
            try:
                await ws.send_str(data)
            except (ConnectionResetError, RuntimeError) as e:
                logger.debug("Dropping WebSocket client: %s", e)
                closed.append(ws)
        for ws in closed:
            self.websockets.discard(ws)
