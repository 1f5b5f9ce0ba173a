import asyncio
import logging
from typing import Any, Callable, Protocol

import websockets
from websockets.exceptions import WebSocketException

from murmur.protocol import decode_frame, encode_frame

logger = logging.getLogger(__name__)


class Transport(Protocol):
    @property
    def is_ready(self) -> bool: ...

    def send(self, payload: dict) -> bool: ...

    async def run(self) -> None: ...

    async def close(self) -> None: ...


class WebSocketTransport:
    """Persistent WebSocket connection with fixed-delay reconnect.

    ``send`` never blocks: frames go onto a per-connection outbox drained by
    a writer task. Frames queued for a connection that drops are discarded,
    nothing is replayed on the next connection.
    """

    def __init__(
        self,
        url: str,
        reconnect_delay_s: float = 1.5,
        open_timeout_s: float = 10.0,
        on_message: Callable[[Any], None] | None = None,
        on_open: Callable[[], None] | None = None,
        on_close: Callable[[], None] | None = None,
    ):
        self.url = url
        self.reconnect_delay_s = reconnect_delay_s
        self.open_timeout_s = open_timeout_s
        self.on_message = on_message
        self.on_open = on_open
        self.on_close = on_close
        self._outbox: asyncio.Queue[str] | None = None
        self._ws = None
        self._closing = False

    @property
    def is_ready(self) -> bool:
        return self._outbox is not None

    def send(self, payload: dict) -> bool:
        if self._outbox is None:
            logger.debug(f"Not connected; dropping {payload.get('type')} request")
            return False
        self._outbox.put_nowait(encode_frame(payload))
        return True

    async def run(self) -> None:
        while not self._closing:
            try:
                async with websockets.connect(self.url, open_timeout=self.open_timeout_s) as ws:
                    await self._serve(ws)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning(f"Connection to {self.url} failed: {e}")
            if self._closing:
                break
            await asyncio.sleep(self.reconnect_delay_s)

    async def close(self) -> None:
        self._closing = True
        if self._ws is not None:
            await self._ws.close()

    async def _serve(self, ws) -> None:
        self._ws = ws
        self._outbox = asyncio.Queue()
        writer = asyncio.create_task(self._write_loop(ws, self._outbox))
        logger.info(f"Connected to {self.url}")
        try:
            if self.on_open:
                self.on_open()
            async for raw in ws:
                data = decode_frame(raw)
                if data is not None and self.on_message:
                    self.on_message(data)
        finally:
            self._outbox = None
            self._ws = None
            writer.cancel()
            logger.warning(f"Disconnected from {self.url}")
            if self.on_close:
                self.on_close()

    async def _write_loop(self, ws, outbox: "asyncio.Queue[str]") -> None:
        while True:
            frame = await outbox.get()
            try:
                await ws.send(frame)
            except WebSocketException as e:
                logger.debug(f"Send failed: {e}")
                return
