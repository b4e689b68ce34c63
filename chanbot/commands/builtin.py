"""Built-in chat commands: web search, runtime version, memory usage, help."""

from __future__ import annotations

import gc
import html
import logging
import platform
import re
import resource
import sys
import unicodedata
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import aiohttp

from ..constants import SEARCH_MAX_RESULTS, SEARCH_RETRY_ATTEMPTS, SEARCH_TIMEOUT
from ..errors.handling import handle_api_error, with_retries
from ..errors.internal import ParsingError
from ..logs.logger import logger

if TYPE_CHECKING:  # pragma: no cover
    from ..config.model import BotConfig
    from ..irc.dispatcher import CommandDispatcher

SendMessage = Callable[[str, str], Awaitable[None]]

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def strip_html(text: str) -> str:
    """Drop markup and decode entities."""
    return _SPACE_RE.sub(" ", html.unescape(_TAG_RE.sub("", text))).strip()


def fold_accents(text: str) -> str:
    """Strip combining accents (é -> e).

    Letters with no decomposition (ß, æ, ø, ł) are kept as they are, so the
    result is not guaranteed to be ASCII.
    """
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


@dataclass(frozen=True, slots=True)
class SearchResult:
    title: str
    url: str
    content: str = ""

    def render(self) -> str:
        content = fold_accents(strip_html(self.content))
        return " ".join(part for part in (self.title, self.url, content) if part)


def parse_search_results(data: Any) -> list[SearchResult]:
    """Extract results from an instant-answer API response.

    The abstract (if any) comes first, then direct results, then related
    topics (flattening topic groups).

    Raises:
        ParsingError: If ``data`` is not a JSON object.
    """
    if not isinstance(data, dict):
        raise ParsingError("Search response is not a JSON object")
    results: list[SearchResult] = []
    abstract = data.get("AbstractText") or ""
    abstract_url = data.get("AbstractURL") or ""
    if abstract and abstract_url:
        results.append(
            SearchResult(title=data.get("Heading") or "", url=abstract_url, content=abstract)
        )
    topics: list[Any] = list(data.get("Results") or [])
    for topic in data.get("RelatedTopics") or []:
        if isinstance(topic, dict) and isinstance(topic.get("Topics"), list):
            topics.extend(topic["Topics"])
        else:
            topics.append(topic)
    for topic in topics:
        if not isinstance(topic, dict) or not topic.get("FirstURL"):
            continue
        text = strip_html(str(topic.get("Text") or ""))
        results.append(SearchResult(title=text, url=str(topic["FirstURL"])))
    return results


class BuiltinCommands:
    """Handlers for the bot's built-in commands.

    Every handler has the ``(args, channel)`` signature expected by the
    command dispatcher and answers through ``send_message``.
    """

    def __init__(
        self,
        send_message: SendMessage,
        config: BotConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        max_results: int = SEARCH_MAX_RESULTS,
    ):
        self.send_message = send_message
        self.config = config
        self.max_results = max_results
        self._session = session
        self._owns_session = session is None
        self._dispatcher: CommandDispatcher | None = None

    @property
    def prefix(self) -> str:
        return self.config.command_prefix

    def handlers(self) -> dict[str, Callable[[str, str | None], Awaitable[None]]]:
        p = self.prefix
        return {
            f"{p}g": self.search,
            f"{p}gv": self.version,
            f"{p}usage": self.usage,
        }

    def install(self, dispatcher: CommandDispatcher) -> None:
        """Register the built-in handlers and the help fallback."""
        for name, handler in self.handlers().items():
            dispatcher.register(name, handler)
        dispatcher.set_fallback(self.help)
        self._dispatcher = dispatcher

    async def help(self, args: str, channel: str | None) -> None:  # noqa: ARG002
        if not channel:
            return
        names = self._dispatcher.names() if self._dispatcher else sorted(self.handlers())
        await self.send_message(f"Commands: {', '.join(names)}", channel)

    async def version(self, args: str, channel: str | None) -> None:  # noqa: ARG002
        if not channel:
            return
        await self.send_message(
            f"{platform.python_implementation()} {platform.python_version()}", channel
        )

    async def usage(self, args: str, channel: str | None) -> None:  # noqa: ARG002
        if not channel:
            return
        await self.send_message(memory_report(), channel)

    async def search(self, args: str, channel: str | None) -> None:
        if not channel:
            return
        if not args:
            await self.send_message(f"Usage: {self.prefix}g <query>", channel)
            return
        results = await self.lookup(args)
        if not results:
            await self.send_message(f"No results for {args}", channel)
            return
        for result in results[: self.max_results]:
            await self.send_message(result.render(), channel)

    async def lookup(self, query: str) -> list[SearchResult]:
        """Query the search API, retrying transient network failures.

        Raises:
            NetworkError: If the API stays unreachable.
            ParsingError: If the response cannot be read.
        """
        session = self._get_session()

        async def _fetch() -> Any:
            async with session.get(
                self.config.search_url,
                params={"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"},
                timeout=aiohttp.ClientTimeout(total=SEARCH_TIMEOUT),
            ) as resp:
                resp.raise_for_status()
                # The API labels its JSON as javascript.
                return await resp.json(content_type=None)

        async def _attempt() -> Any:
            return await handle_api_error(_fetch, "search lookup")

        data = await with_retries(
            _attempt,
            "search lookup",
            max_attempts=SEARCH_RETRY_ATTEMPTS,
        )
        results = parse_search_results(data)
        logger.log_event(
            "command",
            "search_results",
            level=logging.DEBUG,
            user=self.config.nickname,
            query=query,
            count=len(results),
        )
        return results

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


def memory_report() -> str:
    """One-line memory summary of the running process."""
    max_rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is kilobytes on Linux, bytes on macOS
    rss_mb = max_rss / 1024 / 1024 if sys.platform == "darwin" else max_rss / 1024
    objects = len(gc.get_objects())
    generations = "/".join(str(count) for count in gc.get_count())
    return f"Memory- Peak RSS: {rss_mb:.2f}mb, Objects: {objects}, GC: {generations}"
