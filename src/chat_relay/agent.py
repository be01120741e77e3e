import logging
from contextlib import aclosing

import httpx

from .config import Settings
from .decoder import StreamDecoder
from .events import StreamEnd, StreamError
from .tool_registry import ToolRegistry

# Set up logging for message history
logger = logging.getLogger(__name__)


class UpstreamError(RuntimeError):
    """The completion API answered with a non-success status."""


class SessionLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that automatically injects session_id into structured logs."""

    def __init__(self, logger, session_id):
        self.session_id = session_id
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        # Inject session_id into structured logs
        if "extra" in kwargs and "structured" in kwargs["extra"]:
            kwargs["extra"]["structured"]["session_id"] = self.session_id
        return msg, kwargs


class Agent:
    """Chat client for one conversation.

    Streams each turn from the completion API, dispatching tool calls through
    the shared registry as they complete. History lives only as long as the
    agent does.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        session_id: str = None,
    ):
        self.registry = registry
        self.settings = settings or Settings.from_env()
        self.conversation_context = []
        self._http_client = http_client
        self._owns_client = http_client is None

        # Create session-specific logger with automatic session_id injection
        self.logger = SessionLoggerAdapter(logger, session_id or "main")

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=None))
        return self._http_client

    def _headers(self) -> dict:
        return {
            "content-type": "application/json",
            "x-api-key": self.settings.api_key,
            "anthropic-version": self.settings.anthropic_version,
        }

    def build_request(self, messages: list, max_tokens: int | None = None) -> dict:
        """Build the streaming request body, advertising registered tools."""
        body = {
            "model": self.settings.model,
            "max_tokens": max_tokens or self.settings.max_tokens,
            "messages": messages,
            "stream": True,
        }
        if len(self.registry):
            body["tools"] = self.registry.get_schemas()
            body["tool_choice"] = {"type": "auto"}
        return body

    async def _stream_lines(self, body: dict):
        url = f"{self.settings.base_url}/messages"
        async with self.http_client.stream("POST", url, json=body, headers=self._headers()) as response:
            if response.status_code != 200:
                error_body = (await response.aread()).decode("utf-8", errors="replace")
                raise UpstreamError(f"Error: {response.status_code} - {error_body}")
            async for line in response.aiter_lines():
                yield line

    async def run(self, message: str):
        """Send a user message and yield the decoded events of the reply."""
        self.logger.info(
            "User message received",
            extra={"structured": {"log_type": "user_input", "content": message}},
        )
        self.conversation_context.append({"role": "user", "content": message})
        body = self.build_request(list(self.conversation_context))

        decoder = StreamDecoder(self.registry.invoke, logger=self.logger)
        async with aclosing(self._stream_lines(body)) as lines:
            async for event in decoder.decode(lines):
                yield event
                if isinstance(event, StreamEnd) and decoder.text:
                    self.conversation_context.append(
                        {"role": "assistant", "content": decoder.text}
                    )
                elif isinstance(event, StreamError):
                    # Drop the unanswered turn so the next request stays well-formed
                    self.conversation_context.pop()

    async def validate_api_key(self) -> bool:
        """Check the configured key with a minimal request."""
        try:
            response = await self.http_client.post(
                f"{self.settings.base_url}/messages",
                headers=self._headers(),
                json={
                    "model": self.settings.model,
                    "max_tokens": 10,
                    "messages": [{"role": "user", "content": "Hi"}],
                },
            )
            return response.status_code == 200
        except httpx.HTTPError as e:
            self.logger.warning(f"API key validation failed: {e}")
            return False

    def get_conversation_context(self):
        """Export current conversation context."""
        return self.conversation_context.copy()

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
