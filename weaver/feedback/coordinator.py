"""
Debounced feedback on layout edits.

A burst of edits (drags) collapses into one request, fired once the user has
been quiet for ``debounce`` seconds. The request runs as a task on the event
loop; its result lands in a transient FeedbackSlot and never touches the
scene store.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from weaver.config.config import config
from weaver.feedback.summary import scene_summary
from weaver.scene.models import DynamicFeedback, SceneState
from weaver.utils.logging_setup import log_context

logger = logging.getLogger(__name__)

IDLE = "idle"
PENDING = "pending"
IN_FLIGHT = "in_flight"
READY = "ready"
FAILED = "failed"

# (scene_summary_text, changed_entity_name) -> feedback
RequestFn = Callable[[str, str], Awaitable[Any]]


@dataclass
class EditBurst:
    identity: str
    name: str
    snapshot: SceneState


@dataclass
class FeedbackSlot:
    status: str = IDLE
    identity: Optional[str] = None
    entity_name: Optional[str] = None
    impact: Optional[str] = None
    suggestion: Optional[str] = None
    message: Optional[str] = None
    generation: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "identity": self.identity,
            "entityName": self.entity_name,
            "impact": self.impact,
            "suggestion": self.suggestion,
            "message": self.message,
            "generation": self.generation,
        }


class EditFeedbackCoordinator:
    def __init__(
        self,
        request_fn: RequestFn,
        debounce: Optional[float] = None,
        discard_stale: Optional[bool] = None,
        fallback_message: Optional[str] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        summarize: Callable[[SceneState], str] = scene_summary,
    ):
        self.request_fn = request_fn
        self.debounce = float(config["debounce_seconds"] if debounce is None else debounce)
        self.discard_stale = bool(config["discard_stale_feedback"] if discard_stale is None else discard_stale)
        self.fallback_message = fallback_message or config["feedback_fallback_message"]
        self.summarize = summarize
        self.slot = FeedbackSlot()

        self._loop = loop
        self._timer: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[EditBurst] = None
        self._tasks: Set[asyncio.Task] = set()
        self._generation = 0
        self._closed = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def _get_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is not None and self._loop.is_closed():
            self._loop = None
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError:
                return None
        return self._loop

    def notify_edit(self, identity: str, name: str, snapshot: SceneState) -> None:
        """
        Restart the quiet-period timer for the latest edit. In-flight requests are left alone.

        Outside a running event loop the burst is only recorded; the next
        ``flush()`` or ``wait_idle()`` on the loop sends it.
        """
        if self._closed:
            logger.warning(f"Ignoring edit to {identity}: feedback coordinator is closed")
            return
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = EditBurst(identity=identity, name=name, snapshot=snapshot)
        loop = self._get_loop()
        if loop is None:
            logger.debug(f"No running event loop; feedback for {identity} waits for the next flush")
        else:
            self._timer = loop.call_later(self.debounce, self._fire)
        self.slot.status = PENDING
        self.slot.identity = identity
        self.slot.entity_name = name

    def _fire(self) -> Optional[asyncio.Task]:
        self._timer = None
        burst, self._pending = self._pending, None
        if burst is None:
            return None
        self._generation += 1
        generation = self._generation
        self.slot.status = IN_FLIGHT
        with log_context(entity=burst.identity, component="feedback"):
            logger.info(f"Requesting feedback #{generation} for {burst.name}")
        task = self._get_loop().create_task(self._run(burst, generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, burst: EditBurst, generation: int) -> None:
        with log_context(entity=burst.identity, component="feedback"):
            try:
                result = await self.request_fn(self.summarize(burst.snapshot), burst.name)
                if isinstance(result, dict):
                    result = DynamicFeedback.model_validate(result)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Feedback request #{generation} failed: {e}")
                self._settle(burst, generation, None)
            else:
                self._settle(burst, generation, result)

    def _settle(self, burst: EditBurst, generation: int, result: Optional[DynamicFeedback]) -> None:
        if self.discard_stale and generation < self._generation:
            logger.info(f"Discarding stale feedback #{generation}; #{self._generation} is newer")
            return
        slot = self.slot
        slot.identity = burst.identity
        slot.entity_name = burst.name
        slot.generation = generation
        if result is None:
            slot.status = FAILED
            slot.impact = None
            slot.suggestion = None
            slot.message = self.fallback_message
        else:
            slot.status = READY
            slot.impact = result.impact
            slot.suggestion = result.suggestion
            slot.message = None
        if self._pending is not None:
            slot.status = PENDING

    def flush(self) -> Optional[asyncio.Task]:
        """Fire the pending burst now instead of waiting out the timer."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._get_loop() is None:
            return None
        return self._fire()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._pending is not None:
            self._pending = None
            self.slot.status = IN_FLIGHT if self._tasks else IDLE

    async def wait_idle(self) -> None:
        if self._pending is not None and self._timer is None:
            self.flush()
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        self._closed = True
        self.cancel()
        await self.wait_idle()
