"""Side effects that must only happen after an approval action has committed.

Rendering and notification are collaborators behind small protocols; the
defaults render a JSON snapshot and log notifications. Replace them with
``configure_effects`` at startup.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class DocumentRenderer(Protocol):
    def render(self, snapshot: Dict[str, Any]) -> bytes:
        ...


class Notifier(Protocol):
    async def send(self, recipient_id: str, template: str, variables: Dict[str, Any]) -> None:
        ...


class JsonSnapshotRenderer:
    """Renders the printable snapshot as UTF-8 JSON."""

    def render(self, snapshot: Dict[str, Any]) -> bytes:
        return json.dumps(snapshot, ensure_ascii=False, sort_keys=True, default=str).encode("utf-8")


class LoggingNotifier:
    async def send(self, recipient_id: str, template: str, variables: Dict[str, Any]) -> None:
        logger.info("Notification queued", extra={"recipient_id": recipient_id, "template": template, **variables})


_renderer: DocumentRenderer = JsonSnapshotRenderer()
_notifier: Notifier = LoggingNotifier()


def configure_effects(renderer: Optional[DocumentRenderer] = None, notifier: Optional[Notifier] = None) -> None:
    global _renderer, _notifier
    if renderer is not None:
        _renderer = renderer
    if notifier is not None:
        _notifier = notifier


def get_renderer() -> DocumentRenderer:
    return _renderer


def get_notifier() -> Notifier:
    return _notifier


class PostCommitEffects:
    """Queue of callbacks run once the surrounding unit of work has committed."""

    def __init__(self) -> None:
        self._callbacks: List[Callable[[], Awaitable[None]]] = []

    def __len__(self) -> int:
        return len(self._callbacks)

    def clear(self) -> None:
        self._callbacks.clear()

    def on_commit(self, callback: Callable[[], Awaitable[None]]) -> None:
        self._callbacks.append(callback)

    def notify(self, recipient_id: Optional[str], template: str, **variables: Any) -> None:
        if not recipient_id:
            return

        async def _send() -> None:
            await get_notifier().send(recipient_id, template, variables)

        self.on_commit(_send)

    def render(self, snapshot: Dict[str, Any]) -> None:
        async def _render() -> None:
            output = get_renderer().render(snapshot)
            logger.info(
                "Rendered printable document",
                extra={"document_id": snapshot.get("id"), "document_type": snapshot.get("document_type"), "size": len(output)},
            )

        self.on_commit(_render)

    async def run(self) -> None:
        """Run queued callbacks; failures are logged and never propagate."""
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                await callback()
            except Exception:
                logger.exception("Post-commit effect failed")
