"""Webhook hub - wires registry, store, engine, poster and dispatch log from config."""
import asyncio
import logging
from pathlib import Path
from typing import Any

from hookcast.config import SettingsYaml, load_config, resolve_path
from hookcast.dispatch.engine import DispatchEngine, TriggerHandle
from hookcast.dispatch.poster import Headers, HttpPoster
from hookcast.dispatch.stream import ResponseStream
from hookcast.dispatch_log import DispatchLog
from hookcast.registry.topics import TopicRegistry
from hookcast.scheduler.autosave import AutosaveScheduler
from hookcast.store import open_store

logger = logging.getLogger(__name__)


class WebhookHub:
    """One process's webhook machinery, built from settings.yaml."""

    def __init__(
        self,
        project_root: Path | None = None,
        settings: SettingsYaml | None = None,
        poster: HttpPoster | None = None,
    ):
        self.root = project_root or Path.cwd()
        self.settings = settings or load_config(self.root)
        self.store = open_store(self.settings, self.root)
        self.registry = TopicRegistry(self.store)
        self.stream = ResponseStream(
            buffer_size=self.settings.stream.buffer_size,
            history_size=self.settings.stream.history_size,
        )
        self.engine = DispatchEngine(self.registry, self.stream)
        self._poster = poster
        self.dispatch_log: DispatchLog | None = None
        if self.settings.dispatch_log.enabled:
            self.dispatch_log = DispatchLog(resolve_path(self.root, self.settings.dispatch_log.path))
        self.autosave: AutosaveScheduler | None = None
        if self.settings.autosave.enabled:
            self.autosave = AutosaveScheduler(self.registry, self.settings.autosave.interval_seconds)
        self._log_task: asyncio.Task | None = None
        self._started = False
        self._closed = False

    @property
    def poster(self) -> HttpPoster:
        if self._poster is None:
            http = self.settings.http
            self._poster = HttpPoster(
                timeout=http.timeout,
                headers=http.headers,
                raise_for_status=http.raise_for_status,
            )
        return self._poster

    async def start(self) -> None:
        """Attach the dispatch log and start autosave. Needs a running loop."""
        if self._started:
            return
        self._started = True
        if self.dispatch_log is not None:
            self._log_task = self.dispatch_log.attach(self.stream)
        if self.autosave is not None:
            self.autosave.start()
        logger.info("Hub started with %d topics", len(self.registry))

    def trigger(
        self,
        topic: str,
        body: Any = None,
        headers: Headers | None = None,
    ) -> TriggerHandle:
        """POST `body` to every endpoint of `topic`."""
        return self.engine.trigger(topic, self.poster.request_fn(body, headers))

    def persist(self) -> None:
        self.registry.persist()

    async def close(self) -> None:
        """Cancel dispatches, stop autosave, end the stream, close the HTTP client."""
        if self._closed:
            return
        self._closed = True
        await self.engine.close()
        if self.autosave is not None:
            self.autosave.stop()
        self.stream.close()
        if self._log_task is not None:
            await self._log_task
        if self._poster is not None:
            await self._poster.aclose()
        logger.info("Hub closed")

    async def __aenter__(self) -> "WebhookHub":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
