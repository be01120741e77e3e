import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from .agent import Agent
from .config import Settings
from .events import (
    FrameSkipped,
    StreamEnd,
    StreamError,
    TextDelta,
    ToolAbandoned,
    ToolComplete,
    ToolResultDelta,
    ToolStart,
)
from .plugins import default_plugins
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


def event_to_message(event) -> dict | None:
    """Translate a decoder event into a websocket message for the UI."""
    if isinstance(event, ToolResultDelta):
        return {
            "type": "tool_result",
            "id": event.id,
            "name": event.name,
            "ok": event.ok,
            "content": event.buffer,
            "delta": event.text,
        }
    if isinstance(event, TextDelta):
        return {"type": "text", "content": event.buffer, "delta": event.text}
    if isinstance(event, ToolStart):
        return {"type": "tool_call", "status": "started", "id": event.id, "name": event.name}
    if isinstance(event, ToolComplete):
        return {
            "type": "tool_call",
            "status": "complete",
            "id": event.id,
            "name": event.name,
            "arguments": event.arguments,
        }
    if isinstance(event, (FrameSkipped, ToolAbandoned)):
        return {"type": "warning", "content": event.reason}
    if isinstance(event, StreamEnd):
        return {"type": "done"}
    if isinstance(event, StreamError):
        return {"type": "error", "content": event.message}
    return None  # argument fragments are not shown


async def read_user_turn(queue: asyncio.Queue) -> str:
    """Wait for one message, then fold in everything else already queued."""
    parts = [await queue.get()]
    while not queue.empty():
        parts.append(queue.get_nowait())
    return "\n".join(parts)


async def message_loop(agent: Agent, websocket: WebSocket, queue: asyncio.Queue):
    """Run one chat turn per batch of queued user messages."""
    while True:
        message = await read_user_turn(queue)
        await websocket.send_json({"type": "state", "status": "Running"})
        try:
            async for event in agent.run(message):
                payload = event_to_message(event)
                if payload is not None:
                    await websocket.send_json(payload)
        except Exception as e:
            logger.error(f"ERROR: Error processing message: {e}")
            await websocket.send_json(
                {"type": "error", "content": f"Sorry, I encountered an error: {str(e)}"}
            )
        await websocket.send_json({"type": "state", "status": "Connected"})


def _error_payload(content: bytes) -> dict:
    try:
        return json.loads(content)
    except ValueError:
        return {"error": content.decode("utf-8", errors="replace")}


def create_app(
    settings: Settings | None = None,
    registry: ToolRegistry | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Build the relay application.

    A supplied ``http_client`` is used for upstream calls and left open on
    shutdown; otherwise one is created for the app's lifetime.
    """
    settings = settings or Settings.from_env()
    registry = registry if registry is not None else ToolRegistry.from_plugins(default_plugins())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_client = http_client is None
        app.state.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(30.0, read=None)
        )
        try:
            yield
        finally:
            if owns_client:
                await app.state.http_client.aclose()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry

    # Enable CORS for all origins
    app.add_middleware(
        CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"]
    )

    @app.post("/messages")
    async def proxy_messages(request: Request):
        """Relay a completion request to the upstream API, streaming the reply."""
        api_key = request.headers.get("x-api-key")
        if not api_key:
            return JSONResponse(status_code=401, content={"error": "API key required"})

        logger.info("Proxying request to upstream API...")
        headers = {
            "content-type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": request.headers.get(
                "anthropic-version", settings.anthropic_version
            ),
        }
        if request.headers.get("anthropic-beta"):
            headers["anthropic-beta"] = request.headers["anthropic-beta"]

        client: httpx.AsyncClient = request.app.state.http_client
        upstream_request = client.build_request(
            "POST", f"{settings.base_url}/messages", content=await request.body(), headers=headers
        )
        try:
            upstream = await client.send(upstream_request, stream=True)
        except httpx.HTTPError as e:
            logger.error(f"Proxy error: {e}")
            return JSONResponse(
                status_code=500, content={"error": str(e) or "Unknown proxy error"}
            )

        if upstream.status_code >= 400:
            content = await upstream.aread()
            await upstream.aclose()
            return JSONResponse(status_code=upstream.status_code, content=_error_payload(content))

        async def relay():
            try:
                async for chunk in upstream.aiter_bytes():
                    yield chunk
            except httpx.HTTPError as e:
                logger.error(f"Stream error: {e}")
            finally:
                await upstream.aclose()

        return StreamingResponse(
            relay(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.get("/health")
    async def health():
        return {"status": "ok", "message": "Proxy server is running"}

    @app.get("/api/tools")
    async def list_tools(request: Request):
        return request.app.state.registry.get_schemas()

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.accept()
        state = websocket.app.state
        agent = Agent(
            state.registry,
            state.settings,
            http_client=state.http_client,
            session_id=str(uuid.uuid4()),
        )
        queue: asyncio.Queue = asyncio.Queue()
        processing_task = asyncio.create_task(message_loop(agent, websocket, queue))

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message_data = json.loads(data)
                except json.JSONDecodeError:
                    logger.warning(f"SYSTEM: Ignoring malformed message: {data!r}")
                    continue
                if not isinstance(message_data, dict):
                    continue
                if message_data.get("type", "user_message") == "user_message":
                    content = str(message_data.get("content", "")).strip()
                    if content:
                        await queue.put(content)
        except WebSocketDisconnect:
            logger.info("SYSTEM: Client disconnected")
        finally:
            processing_task.cancel()
            await agent.aclose()

    return app


app = create_app()
