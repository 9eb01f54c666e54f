from __future__ import annotations

import logging
from dataclasses import dataclass

from postflow.adapters.clock import SystemClock
from postflow.adapters.dev_notify import create_dev_channels
from postflow.adapters.dev_queue import InProcessQueue, QueueScheduler, QueueWorker
from postflow.adapters.fs.filestore import FileSystemStore
from postflow.adapters.memory_cache import InMemoryTaggedCache
from postflow.adapters.memory_search import InMemorySearchIndex
from postflow.adapters.sqlite.repos import SQLitePostRepo, SQLiteRelatedDataRepo, SQLiteTagRepo
from postflow.core.ports.cache import CachePort
from postflow.core.ports.notify import NotificationChannelPort
from postflow.core.ports.search import SearchIndexPort
from postflow.core.ports.time import ClockPort
from postflow.core.services.cache import CacheService
from postflow.core.services.events import EventDispatcher, SignalBus
from postflow.core.services.listeners import NotificationDispatcher, SearchIndexUpdater
from postflow.core.services.markdown_renderer import MarkdownRenderer
from postflow.core.services.post_lifecycle import PostObserver
from postflow.core.services.slug import SlugGenerator
from postflow.rules.models import Rules
from postflow.services.post import PostService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    post_service: PostService
    post_repo: SQLitePostRepo
    tag_repo: SQLiteTagRepo
    related_repo: SQLiteRelatedDataRepo
    file_store: FileSystemStore
    cache: CacheService
    queue: InProcessQueue
    worker: QueueWorker
    events: EventDispatcher
    signals: SignalBus
    search_index: SearchIndexPort
    channels: list[NotificationChannelPort]
    rules: Rules
    clock: ClockPort

    @classmethod
    def create(
        cls,
        db_path: str,
        fs_path: str,
        rules: Rules,
        clock: ClockPort | None = None,
        cache_store: CachePort | None = None,
        search_index: SearchIndexPort | None = None,
        channels: list[NotificationChannelPort] | None = None,
    ) -> ServiceContext:
        # Adapters
        post_repo = SQLitePostRepo(db_path)
        tag_repo = SQLiteTagRepo(db_path)
        related_repo = SQLiteRelatedDataRepo(db_path)
        file_store = FileSystemStore(fs_path)
        clock = clock or SystemClock()
        search_index = search_index if search_index is not None else InMemorySearchIndex()
        if channels is None:
            channels = list(create_dev_channels(rules.notifications.push_enabled))

        queue = InProcessQueue(
            lanes=[rules.queue.search_index_queue, rules.queue.notifications_queue]
        )
        worker = QueueWorker(queue)

        # Core services
        cache = CacheService(cache_store or InMemoryTaggedCache(), rules.cache)
        slugs = SlugGenerator(post_repo, fallback=rules.slug.fallback)
        renderer = MarkdownRenderer(words_per_minute=rules.content.words_per_minute)
        signals = SignalBus()

        events = EventDispatcher(queue)
        events.subscribe(
            SearchIndexUpdater(
                search_index,
                rules.notifications,
                queue=rules.queue.search_index_queue,
                tries=rules.queue.max_attempts,
            )
        )
        events.subscribe(
            NotificationDispatcher(
                channels,
                rules.notifications,
                queue=rules.queue.notifications_queue,
                tries=rules.queue.max_attempts,
            )
        )

        observer = PostObserver(
            slugs=slugs,
            renderer=renderer,
            cache=cache,
            posts=post_repo,
            related=related_repo,
            images=file_store,
            signals=signals,
            events=events,
            clock=clock,
            rules=rules,
        )

        post_service = PostService(
            posts=post_repo,
            tags=tag_repo,
            hooks=observer,
            slugs=slugs,
            cache=cache,
            clock=clock,
            rules=rules,
        )

        return cls(
            post_service=post_service,
            post_repo=post_repo,
            tag_repo=tag_repo,
            related_repo=related_repo,
            file_store=file_store,
            cache=cache,
            queue=queue,
            worker=worker,
            events=events,
            signals=signals,
            search_index=search_index,
            channels=channels,
            rules=rules,
            clock=clock,
        )

    @property
    def lanes(self) -> list[str]:
        return [self.rules.queue.search_index_queue, self.rules.queue.notifications_queue]

    def create_scheduler(self) -> QueueScheduler:
        return QueueScheduler(
            self.worker,
            self.lanes,
            poll_interval_seconds=self.rules.queue.poll_interval_seconds,
        )
