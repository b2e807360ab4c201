"""Filesystem watch service that keeps front matter in sync with file locations."""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from autofm.backup import BackupRepository
from autofm.config import AutoFMConfig
from autofm.errors import WatchStartError
from autofm.frontmatter import FrontMatterProcessor, MergeMode, Operation, OperationResult
from autofm.templates import DEFAULT_TEMPLATE

from .state import Notification, NotificationKind, WatchAction, WatchPhase, WatchStateMachine

LOGGER = logging.getLogger(__name__)

ResultCallback = Callable[[OperationResult], None]

_OPERATIONS: dict[WatchAction, Operation] = {
    WatchAction.INITIALIZE: "initialize",
    WatchAction.UPDATE: "update",
    WatchAction.RESYNC: "resync",
    WatchAction.STAMP_UPDATED: "stamp_updated",
}


@dataclass(slots=True)
class WatchContext:
    """Settings that stay fixed for one watch or processing session.

    Attributes:
        root: Directory being watched.
        config: Effective configuration.
        mode: Merge flags applied to updates.
        template_name: Template used to generate metadata.
        one_shot: Whether the session ends after the initial scan.
        backup: Whether backups were requested on the command line.
    """

    root: Path
    config: AutoFMConfig
    mode: MergeMode = MergeMode()
    template_name: str = DEFAULT_TEMPLATE
    one_shot: bool = False
    backup: bool = False

    @classmethod
    def build(
        cls,
        root: Path,
        config: AutoFMConfig,
        *,
        init: bool = False,
        force: bool = False,
        ct: bool = False,
        backup: bool = False,
        template_name: str = DEFAULT_TEMPLATE,
    ) -> "WatchContext":
        """Translate command-line flags into a session context."""
        return cls(
            root=root.expanduser().resolve(),
            config=config,
            mode=MergeMode(force=force, taxonomy_only=ct),
            template_name=template_name,
            one_shot=init or ct,
            backup=backup,
        )

    @property
    def backup_enabled(self) -> bool:
        return self.backup or self.config.backup.enabled


class MarkdownScanner:
    """Discover markdown files under a root, honouring ignore rules."""

    def __init__(self, *, extensions: Iterable[str], ignored_dirs: Iterable[str]) -> None:
        self.extensions = frozenset(ext.lower() for ext in extensions)
        self.ignored_dirs = frozenset(ignored_dirs)

    @classmethod
    def from_config(cls, config: AutoFMConfig) -> "MarkdownScanner":
        return cls(
            extensions=config.watch.extensions,
            ignored_dirs=[*config.watch.ignored_dirs, config.backup.directory],
        )

    def is_ignored(self, path: Path, root: Path) -> bool:
        """Return whether ``path`` sits in a hidden or ignored location."""
        try:
            relative = path.relative_to(root)
        except ValueError:
            return True
        return any(part.startswith(".") or part in self.ignored_dirs for part in relative.parts)

    def is_candidate(self, path: Path, root: Path) -> bool:
        """Return whether ``path`` is a watched markdown file."""
        return path.suffix.lower() in self.extensions and not self.is_ignored(path, root)

    def scan(self, root: Path) -> Iterator[Path]:
        """Yield markdown files under ``root`` in a stable order."""
        root = root.expanduser().resolve()
        if not root.exists():
            return
        if root.is_file():
            if root.suffix.lower() in self.extensions:
                yield root
            return
        for path in sorted(root.rglob("*")):
            if path.is_file() and self.is_candidate(path, root):
                yield path


class WatchService:
    """High-level orchestration layer for directory monitoring."""

    def __init__(
        self,
        context: WatchContext,
        *,
        processor: Optional[FrontMatterProcessor] = None,
    ) -> None:
        """Initialize the watch service.

        Args:
            context: Session settings shared with the processor.
            processor: Optional processor override, mainly for tests.
        """
        self._context = context
        self._root = context.root
        self._config = context.config
        backups = BackupRepository(self._root, self._config.backup) if context.backup_enabled else None
        self._processor = processor or FrontMatterProcessor(
            self._root,
            self._config,
            backups=backups,
            template_name=context.template_name,
        )
        self._machine = WatchStateMachine.for_session(
            one_shot=context.one_shot, force=context.mode.force
        )
        self._scanner = MarkdownScanner.from_config(self._config)
        self._observer: Optional[Observer] = None
        self._queue: queue.Queue[Optional[Notification]] = queue.Queue()
        self._stop_event = threading.Event()
        self._pending: dict[Path, float] = {}
        self._debounce_seconds = self._config.watch.debounce_seconds
        self._batch_delay = self._config.watch.batch_delay_seconds
        self._counts = {"processed": 0, "written": 0, "failed": 0}

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    @property
    def phase(self) -> WatchPhase:
        return self._machine.phase

    @property
    def processor(self) -> FrontMatterProcessor:
        return self._processor

    @property
    def counts(self) -> dict[str, int]:
        """Return processed/written/failed totals for the session."""
        return dict(self._counts)

    def start(self) -> None:
        """Start the observer and queue the initial scan.

        Raises:
            WatchStartError: If the root is unusable or the observer cannot start.
        """
        if self._observer is not None:
            raise WatchStartError("WatchService is already running.", path=self._root)
        if not self._root.is_dir():
            raise WatchStartError(f"Watch root is not a directory: {self._root}", path=self._root)

        if not self._context.one_shot:
            observer = Observer()
            handler = _WatchEventHandler(self._root, self._queue, self._scanner)
            try:
                observer.schedule(handler, str(self._root), recursive=True)
                observer.start()
            except OSError as exc:
                raise WatchStartError(
                    f"Failed to start watcher for {self._root}: {exc}", path=self._root
                ) from exc
            self._observer = observer
            LOGGER.info("Watching %s", self._root)

        self._enqueue_scan()

    def run(self, callback: Optional[ResultCallback] = None) -> None:
        """Consume notifications until stopped or a one-shot session closes.

        Args:
            callback: Callable invoked with every operation result.
        """
        try:
            while not self._stop_event.is_set():
                try:
                    notification = self._queue.get(timeout=self._next_timeout())
                except queue.Empty:
                    self._emit(self.flush_pending(), callback)
                    continue

                if notification is None:
                    break

                self._emit(self.dispatch(notification), callback)
                if self._machine.phase is WatchPhase.CLOSING:
                    break
        finally:
            self.stop()

    def dispatch(self, notification: Notification) -> list[OperationResult]:
        """Apply the actions a single notification triggers.

        Content edits are only scheduled here; :meth:`flush_pending` applies
        them once their debounce deadline passes.
        """
        path = notification.path
        if notification.kind is NotificationKind.CHANGE and path is not None:
            if self._processor.is_own_write(path):
                LOGGER.debug("Ignoring change caused by our own write: %s", path)
                return []
        if notification.kind is NotificationKind.UNLINK and path is not None:
            self._pending.pop(path, None)
            self._processor.forget(path)

        results: list[OperationResult] = []
        for action in self._machine.handle(notification):
            if action is WatchAction.LOG:
                self._log_notification(notification)
            elif action is WatchAction.CLOSE:
                self._pending.clear()
            elif action is WatchAction.STAMP_UPDATED:
                if path is not None:
                    self._pending[path] = time.monotonic() + self._debounce_seconds
            elif path is not None:
                results.append(self._apply(action, path))
        return results

    def flush_pending(self, *, force: bool = False) -> list[OperationResult]:
        """Stamp files whose debounce deadline has passed.

        Args:
            force: Stamp every pending file regardless of its deadline.
        """
        now = time.monotonic()
        due = [path for path, deadline in self._pending.items() if force or deadline <= now]
        results: list[OperationResult] = []
        for path in due:
            self._pending.pop(path, None)
            if not self._machine.permits(WatchAction.STAMP_UPDATED):
                LOGGER.debug("Dropping deferred stamp outside the ready phase: %s", path)
                continue
            results.append(self._apply(WatchAction.STAMP_UPDATED, path))
        return results

    def process_files(
        self,
        paths: Iterable[Path],
        callback: Optional[ResultCallback] = None,
    ) -> list[OperationResult]:
        """Update the given files one at a time under the session's merge mode."""
        results: list[OperationResult] = []
        for index, path in enumerate(paths):
            if index and self._batch_delay > 0:
                time.sleep(self._batch_delay)
            result = self._processor.process(path, "update", self._context.mode)
            self._record(result)
            results.append(result)
            if callback is not None:
                callback(result)
        return results

    def stop(self) -> None:
        """Terminate the watch service and release resources."""
        self._stop_event.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._pending.clear()
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
        # Unblock the queue to allow the processing loop to exit cleanly.
        self._queue.put(None)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _enqueue_scan(self) -> None:
        try:
            for path in self._scanner.scan(self._root):
                self._queue.put(Notification(NotificationKind.ADD, path))
        except OSError as exc:
            self._queue.put(Notification(NotificationKind.ERROR, self._root, str(exc)))
        self._queue.put(Notification(NotificationKind.READY))

    def _next_timeout(self) -> Optional[float]:
        if not self._pending:
            return None
        return max(0.0, min(self._pending.values()) - time.monotonic())

    def _apply(self, action: WatchAction, path: Path) -> OperationResult:
        operation = _OPERATIONS[action]
        mode = self._context.mode if action is WatchAction.UPDATE else MergeMode()
        result = self._processor.process(path, operation, mode)
        self._record(result)
        return result

    def _record(self, result: OperationResult) -> None:
        self._counts["processed"] += 1
        if not result.success:
            self._counts["failed"] += 1
        elif result.changed:
            self._counts["written"] += 1

    def _emit(self, results: list[OperationResult], callback: Optional[ResultCallback]) -> None:
        if callback is None:
            return
        for result in results:
            callback(result)

    def _log_notification(self, notification: Notification) -> None:
        kind = notification.kind
        if kind is NotificationKind.ERROR:
            LOGGER.error("Watcher error for %s: %s", notification.path or self._root, notification.error)
        elif kind is NotificationKind.UNLINK:
            LOGGER.info("File removed: %s", notification.path)
        elif kind is NotificationKind.UNLINK_DIR:
            LOGGER.info("Directory removed: %s", notification.path)
        else:
            LOGGER.info("Directory added: %s", notification.path)


class _WatchEventHandler(FileSystemEventHandler):
    """Forward filesystem events into the service queue."""

    def __init__(
        self,
        root: Path,
        queue_handle: queue.Queue[Optional[Notification]],
        scanner: MarkdownScanner,
    ) -> None:
        self._root = root
        self._queue = queue_handle
        self._scanner = scanner

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a filesystem create event."""
        path = _event_path(event.src_path)
        if event.is_directory:
            if not self._scanner.is_ignored(path, self._root):
                self._put(NotificationKind.ADD_DIR, path)
        elif self._scanner.is_candidate(path, self._root):
            self._put(NotificationKind.ADD, path)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle a filesystem modify event."""
        if event.is_directory:
            return
        path = _event_path(event.src_path)
        if self._scanner.is_candidate(path, self._root):
            self._put(NotificationKind.CHANGE, path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle a filesystem delete event."""
        path = _event_path(event.src_path)
        if event.is_directory:
            if not self._scanner.is_ignored(path, self._root):
                self._put(NotificationKind.UNLINK_DIR, path)
        elif self._scanner.is_candidate(path, self._root):
            self._put(NotificationKind.UNLINK, path)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle a filesystem move event."""
        source = _event_path(event.src_path)
        destination = _event_path(event.dest_path)
        if event.is_directory:
            if not self._scanner.is_ignored(source, self._root):
                self._put(NotificationKind.UNLINK_DIR, source)
            if self._scanner.is_ignored(destination, self._root):
                return
            self._put(NotificationKind.ADD_DIR, destination)
            for path in self._scanner.scan(destination):
                if self._scanner.is_candidate(path, self._root):
                    self._put(NotificationKind.ADD, path)
            return

        source_watched = self._scanner.is_candidate(source, self._root)
        if not self._scanner.is_candidate(destination, self._root):
            if source_watched:
                self._put(NotificationKind.UNLINK, source)
            return
        if not source_watched:
            # Temp file renamed over a watched file: an atomic save.
            self._put(NotificationKind.CHANGE, destination)
            return
        self._put(NotificationKind.UNLINK, source)
        self._put(NotificationKind.ADD, destination)

    def _put(self, kind: NotificationKind, path: Path) -> None:
        self._queue.put(Notification(kind, path))


def _event_path(raw: str | bytes) -> Path:
    return Path(os.fsdecode(raw)).expanduser()


__all__ = ["MarkdownScanner", "ResultCallback", "WatchContext", "WatchService"]
