import asyncio
import logging
import threading

from murmur.client import ChatClient
from murmur.engine import DispatchOutcome
from murmur.runtime.builtins import BuiltinCommands
from murmur.runtime.render import describe_outcome, render_chat
from murmur.runtime.router import InputRouter

logger = logging.getLogger(__name__)


class LineReader:
    """Reads stdin on a daemon thread so an interrupted loop never waits on ``input()``.

    A prompt is shown only when :meth:`readline` asks for the next line.
    End of input is reported as None.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, prompt: str = "\n> "):
        self._loop = loop
        self._prompt = prompt
        self._lines: asyncio.Queue[str | None] = asyncio.Queue()
        self._wanted = threading.Event()
        self._thread = threading.Thread(target=self._read, name="murmur-input", daemon=True)
        self._thread.start()

    async def readline(self) -> str | None:
        self._wanted.set()
        return await self._lines.get()

    def _read(self) -> None:
        while True:
            self._wanted.wait()
            self._wanted.clear()
            try:
                line = input(self._prompt)
            except (EOFError, KeyboardInterrupt):
                line = None
            try:
                self._loop.call_soon_threadsafe(self._lines.put_nowait, line)
            except RuntimeError:
                # loop already closed
                return
            if line is None:
                return


class ChatREPL:
    def __init__(self, client: ChatClient):
        self.client = client
        self.builtins = BuiltinCommands(client)
        self.router = InputRouter(self.builtins)

    def handle_line(self, user_input: str) -> bool:
        route = self.router.route(user_input)
        if route.kind == "builtin":
            return self.builtins.handle(route.name, route.args)
        if route.kind == "unknown":
            print(f"Unknown command: /{route.name}. Type /help for available commands.")
            return True

        outcome = self.client.send(route.args)
        if outcome is not DispatchOutcome.DISPATCHED:
            text = describe_outcome(outcome)
            if text:
                print(text)
        return True

    async def run(self) -> None:
        print(f"🤖 murmur ({self.client.config.ws_url})")
        print("Commands: /help for all commands")
        print(render_chat(self.client.active))

        reader = LineReader(asyncio.get_running_loop())
        connection = asyncio.create_task(self.client.run())

        try:
            while True:
                user_input = await reader.readline()
                if user_input is None:
                    break
                user_input = user_input.strip()
                if not user_input:
                    continue
                try:
                    if not self.handle_line(user_input):
                        break
                except Exception as e:
                    logger.exception("Command failed")
                    print(f"\n❌ Error: {e}")
        except (KeyboardInterrupt, asyncio.CancelledError):
            print("\n\n⚠️  Interrupted")
        finally:
            await self.client.close()
            connection.cancel()
