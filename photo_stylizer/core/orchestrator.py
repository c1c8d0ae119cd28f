"""Session orchestrator for single and batch image generation."""

import asyncio
from typing import Callable, List, Optional, Set
import httpx

from .generation import GenerationBackend, failure_from_error
from .styles import StyleCatalog, resolve_prompt
from ..models.schemas import (
    BatchItem,
    BatchResult,
    GenerationRequest,
    GenerationResult,
    GenerationSessionState,
    StyleTemplate,
)
from ..models.enums import BatchStatus, FailureKind, GenerationMode
from ..utils.config import Config
from ..utils.logger import get_logger
from ..utils.errors import ConfigurationError, GenerationCancelled, InputError, PhotoStylizerError
from ..utils.retry import timeout_async

logger = get_logger(__name__)

StateListener = Callable[[GenerationSessionState], None]

NOT_CONFIGURED_MESSAGE = (
    "Image generation is not configured. Set GEMINI_API_KEY or PROXY_URL."
)
NO_PHOTO_MESSAGE = "Please select a photo first"
BUSY_MESSAGE = "A generation is already in progress"


class GenerationOrchestrator:
    """
    Owns one session's generation state.

    Single generations run the backend call under a timeout while a
    heartbeat advances progress_percent toward (never to) 100. Batch
    generation folds the style catalog sequentially, one awaited call per
    style, recording each outcome without aborting on failures.

    Args:
        backend: Generation backend, or None when no credential is configured
        catalog: Style catalog used for batch runs
        config: Optional configuration for timeouts and progress cadence
    """

    def __init__(
        self,
        backend: Optional[GenerationBackend],
        catalog: StyleCatalog,
        config: Optional[Config] = None,
    ):
        self.backend = backend
        self.catalog = catalog

        if config:
            self.request_timeout = config.request_timeout_seconds
            self.progress_interval = config.progress_interval_seconds
            self.progress_step = config.progress_step
            self.progress_cap = config.progress_cap
            self.settle_delay = config.progress_settle_seconds
        else:
            self.request_timeout = 60.0
            self.progress_interval = 0.5
            self.progress_step = 10
            self.progress_cap = 90
            self.settle_delay = 1.0

        self._state = GenerationSessionState()
        self._listeners: List[StateListener] = []
        self._inflight: Optional[asyncio.Task] = None
        # Calls cancelled through cancel(), as opposed to the caller being cancelled
        self._cancelled_calls: Set[asyncio.Task] = set()
        self._batch_cancel_requested = False
        self._settle_handle: Optional[asyncio.TimerHandle] = None
        # Bumped on photo change or reset; stale calls must not write into a newer session
        self._epoch = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> GenerationSessionState:
        """Snapshot of the session state."""
        return self._state.model_copy(deep=True)

    @property
    def is_configured(self) -> bool:
        return self.backend is not None

    @property
    def is_busy(self) -> bool:
        return self._state.is_generating or self._state.is_batch_generating

    @property
    def can_generate(self) -> bool:
        """False disables the generate action (no credential, no photo, or busy)."""
        return self.is_configured and bool(self._state.current_photo) and not self.is_busy

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener called with a state snapshot after every change.

        Returns:
            Callable that unsubscribes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes):
        for key, value in changes.items():
            setattr(self._state, key, value)
        self._notify()

    def _notify(self):
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("State listener failed")

    # ------------------------------------------------------------------
    # Session actions
    # ------------------------------------------------------------------

    def select_photo(self, photo: Optional[str]):
        """Replace the current photo and reset every result."""
        self._abandon_running()
        self._epoch += 1
        self._state = GenerationSessionState(current_photo=photo, mode=self._state.mode)
        logger.info(
            "Photo selected",
            extra={"photo_length": len(photo or "")}
        )
        self._notify()

    def reset(self):
        """Clear result, error, progress and batch, keeping the photo."""
        self._abandon_running()
        self._epoch += 1
        self._state = GenerationSessionState(
            current_photo=self._state.current_photo,
            mode=self._state.mode,
        )
        self._notify()

    @property
    def running_mode(self) -> Optional[GenerationMode]:
        """Mode of the operation in flight, or None when idle."""
        if self._state.is_batch_generating:
            return GenerationMode.BATCH
        if self._state.is_generating:
            return GenerationMode.SINGLE
        return None

    def set_mode(self, mode: GenerationMode):
        """Switch between single and batch mode, cancelling work of the mode left behind."""
        mode = GenerationMode(mode)
        if mode == self._state.mode:
            return

        running = self.running_mode
        if running is not None and running != mode:
            logger.info(
                "Mode switch cancels in-flight generation",
                extra={"from_mode": running.value, "to_mode": mode.value}
            )
            self.cancel()

        self._update(mode=mode)

    def cancel(self) -> bool:
        """
        Cancel the in-flight single call and/or the running batch.

        Returns:
            True if something was cancelled
        """
        cancelled = False

        if self._inflight is not None and not self._inflight.done():
            self._cancelled_calls.add(self._inflight)
            self._inflight.cancel()
            cancelled = True

        if self._state.is_batch_generating:
            self._batch_cancel_requested = True
            cancelled = True

        if cancelled:
            logger.info("Generation cancel requested")

        return cancelled

    def _abandon_running(self):
        # The cancelled call finishes on its own; a new session may start before it does
        self.cancel()
        self._inflight = None
        self._cancel_settle()

    # ------------------------------------------------------------------
    # Single generation
    # ------------------------------------------------------------------

    async def generate_image(self, photo: Optional[str], prompt: Optional[str]) -> GenerationResult:
        """
        Generate one styled image.

        Args:
            photo: Embeddable image payload (data URL or raw base64)
            prompt: Style prompt or custom prompt

        Returns:
            GenerationSuccess or GenerationFailure; network, upstream,
            no-image, timeout and cancellation failures are returned, not raised

        Raises:
            InputError: Missing photo or prompt, or a call already in flight
            ConfigurationError: No backend configured
        """
        if not photo:
            raise InputError(NO_PHOTO_MESSAGE)
        if not prompt or not prompt.strip():
            raise InputError("Please select a style or write a custom prompt")
        if not self.is_configured:
            raise ConfigurationError(NOT_CONFIGURED_MESSAGE)
        if self._inflight is not None:
            raise InputError(BUSY_MESSAGE)

        request = GenerationRequest(source_image=photo, prompt_text=prompt)

        changes = dict(
            is_generating=True,
            progress_percent=0,
            last_error=None,
            last_result=None,
        )
        if not self._state.is_batch_generating:
            changes["mode"] = GenerationMode.SINGLE

        self._cancel_settle()
        self._update(**changes)

        logger.info(
            "Generation started",
            extra={"backend": self.backend.name, "prompt": prompt[:100]}
        )

        epoch = self._epoch
        heartbeat = asyncio.create_task(self._heartbeat(epoch))
        task = asyncio.create_task(
            timeout_async(
                self.backend.generate(request.source_image, request.prompt_text),
                self.request_timeout,
            )
        )
        self._inflight = task

        try:
            result = await self._await_call(task)
        except BaseException:
            if epoch == self._epoch:
                self._update(is_generating=False, progress_percent=0)
            raise
        finally:
            heartbeat.cancel()
            self._cancelled_calls.discard(task)
            if self._inflight is task:
                self._inflight = None

        if epoch == self._epoch:
            self._settle(result)
        return result

    async def generate_selected(
        self,
        style_id: Optional[str] = None,
        custom_prompt: Optional[str] = None,
    ) -> GenerationResult:
        """Generate from the current photo with a catalog style or a custom prompt."""
        if not self._state.current_photo:
            raise InputError(NO_PHOTO_MESSAGE)

        prompt = resolve_prompt(self.catalog, style_id, custom_prompt)
        return await self.generate_image(self._state.current_photo, prompt)

    async def _await_call(self, task: asyncio.Task) -> GenerationResult:
        try:
            return await task

        except asyncio.CancelledError:
            if task not in self._cancelled_calls:
                raise
            logger.info("Generation cancelled")
            return failure_from_error(GenerationCancelled())

        except (PhotoStylizerError, httpx.HTTPError) as e:
            failure = failure_from_error(e)
            logger.error(
                "Generation failed",
                extra={"error_kind": failure.kind.value, "error": str(e)}
            )
            return failure

    async def _heartbeat(self, epoch: int):
        # Cosmetic only: the remote API reports no transfer progress
        while True:
            await asyncio.sleep(self.progress_interval)
            if epoch != self._epoch:
                return
            progress = min(self._state.progress_percent + self.progress_step, self.progress_cap)
            if progress > self._state.progress_percent:
                self._update(progress_percent=progress)

    def _settle(self, result: GenerationResult):
        if result.success:
            self._update(
                is_generating=False,
                progress_percent=100,
                last_result=result,
                generated_image=result.image_url,
                last_error=None,
            )
            logger.info("Generation succeeded", extra={"image_url_length": len(result.image_url)})
        else:
            self._update(
                is_generating=False,
                progress_percent=100,
                last_result=result,
                last_error=result.message,
            )

        loop = asyncio.get_running_loop()
        self._settle_handle = loop.call_later(self.settle_delay, self._reset_progress)

    def _reset_progress(self):
        self._settle_handle = None
        if not self._state.is_generating:
            self._update(progress_percent=0)

    def _cancel_settle(self):
        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None

    # ------------------------------------------------------------------
    # Batch generation
    # ------------------------------------------------------------------

    async def generate_all_styles(self, photo: Optional[str]) -> BatchResult:
        """
        Generate one image per catalog style, sequentially in catalog order.

        Per-style failures are recorded and the batch continues. After a
        cancel() the remaining styles are recorded as cancelled so the
        result always has one item per style.

        Raises:
            InputError: Missing photo or generation already in progress
            ConfigurationError: No backend configured (no call is made)
        """
        if not photo:
            raise InputError(NO_PHOTO_MESSAGE)
        if not self.is_configured:
            logger.error(
                "Batch generation refused",
                extra={"error_kind": FailureKind.CONFIGURATION.value}
            )
            raise ConfigurationError(NOT_CONFIGURED_MESSAGE)
        if self.is_busy:
            raise InputError(BUSY_MESSAGE)

        batch = BatchResult(status=BatchStatus.RUNNING)
        self._batch_cancel_requested = False
        epoch = self._epoch
        self._update(
            is_batch_generating=True,
            batch=batch,
            last_error=None,
            mode=GenerationMode.BATCH,
        )

        logger.info(
            "Batch generation started",
            extra={"styles": self.catalog.ids, "backend": self.backend.name}
        )

        try:
            for style in self.catalog:
                if self._batch_cancel_requested or epoch != self._epoch:
                    result = failure_from_error(GenerationCancelled("Batch cancelled"))
                else:
                    result = await self._generate_style(photo, style)

                batch.items.append(BatchItem(style=style, result=result))
                if epoch == self._epoch:
                    self._notify()

            cancelled = self._batch_cancel_requested or epoch != self._epoch
            batch.status = BatchStatus.CANCELLED if cancelled else BatchStatus.COMPLETED
        finally:
            if epoch == self._epoch:
                self._batch_cancel_requested = False
                self._update(is_batch_generating=False)

        logger.info(
            "Batch generation finished",
            extra={
                "status": batch.status.value,
                "total": len(batch.items),
                "successful": len(batch.succeeded),
                "failed": len(batch.failed),
            }
        )

        return batch

    async def generate_all(self) -> BatchResult:
        """Run a batch on the current photo."""
        return await self.generate_all_styles(self._state.current_photo)

    async def _generate_style(self, photo: str, style: StyleTemplate) -> GenerationResult:
        try:
            result = await self.generate_image(photo, style.prompt_text)
        except Exception as e:
            # One style's failure never aborts the batch
            logger.exception(
                f"Style {style.id} raised during batch",
                extra={"style": style.id, "error": str(e)}
            )
            result = failure_from_error(e)

        if not result.success:
            logger.warning(
                f"Style {style.id} failed",
                extra={"style": style.id, "error_kind": result.kind.value, "error": result.message}
            )

        return result
