"""
Analysis Loop

Runs capture -> describe -> speak on a fixed cadence.

At most one analysis pass is in flight at any time: a tick that fires
while a pass is running is dropped, never queued. Pausing cancels the
timer, the running pass and any speech, and clears the description.
Results belonging to a pass that was superseded by a pause are discarded.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, List, Optional

from ..diagnostics import Metrics
from ..exceptions import (
    CameraPermissionError,
    DescriptionServiceError,
    EnhanceUnavailableError,
    FrameCaptureError,
)
from ..frame_capture import FrameSource
from ..llm_client import DescriptionService
from ..notifier import ConsoleNotifier, Notifier
from ..object_detection import DetectedObject, MockObjectDetector
from ..tts import SpeechOutput
from .models import AnalysisState, LoopConfig, LoopStats

logger = logging.getLogger(__name__)

DescriptionListener = Callable[[str], None]
ObjectsListener = Callable[[List[DetectedObject]], None]


class AnalysisLoop:
    """Periodic scene narrator with pause/resume.

    Capabilities are injected so that any of them can be replaced by a fake:

    - ``frames``: FrameSource producing still images
    - ``describer``: DescriptionService turning an image into text
    - ``speech``: object with ``async speak(text)`` and ``cancel()``
    - ``notifier``: where recoverable errors are reported
    - ``detector``: optional object detector feeding labels and the overlay
    """

    def __init__(
        self,
        frames: FrameSource,
        describer: DescriptionService,
        speech: SpeechOutput,
        notifier: Optional[Notifier] = None,
        detector: Optional[MockObjectDetector] = None,
        loop_config: Optional[LoopConfig] = None,
        metrics: Optional[Metrics] = None,
    ):
        self.frames = frames
        self.describer = describer
        self.speech = speech
        self.notifier = notifier or ConsoleNotifier()
        self.detector = detector
        self.config = loop_config or LoopConfig.from_env()
        self.metrics = metrics or Metrics()
        self.stats = LoopStats()

        self.description = ""
        self.objects: List[DetectedObject] = []
        self.can_enhance = False

        self._state = AnalysisState.IDLE
        self._running = False
        self._epoch = 0
        self._timer_task: Optional[asyncio.Task] = None
        self._objects_task: Optional[asyncio.Task] = None
        self._pass_task: Optional[asyncio.Task] = None
        self._done: Optional[asyncio.Event] = None
        self.fatal_error: Optional[Exception] = None
        self._objects_busy = False
        self._description_listeners: List[DescriptionListener] = []
        self._objects_listeners: List[ObjectsListener] = []

    # -- state ------------------------------------------------------------

    @property
    def state(self) -> AnalysisState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is AnalysisState.IN_FLIGHT

    @property
    def running(self) -> bool:
        return self._running

    @property
    def paused(self) -> bool:
        return not self._running

    def on_description(self, listener: DescriptionListener):
        self._description_listeners.append(listener)

    def on_objects(self, listener: ObjectsListener):
        self._objects_listeners.append(listener)

    def _set_description(self, text: str):
        self.description = text
        for listener in self._description_listeners:
            listener(text)

    def _set_objects(self, objects: List[DetectedObject]):
        self.objects = objects
        for listener in self._objects_listeners:
            listener(objects)

    def _stale(self, epoch: int) -> bool:
        return epoch != self._epoch

    # -- control ----------------------------------------------------------

    def start(self, run_immediately: Optional[bool] = None):
        """Start the timer; by default the first pass runs right away."""
        if self._running:
            return
        if not self.frames.ready:
            raise FrameCaptureError("Camera is not ready")

        if run_immediately is None:
            run_immediately = self.config.run_immediately

        self._running = True
        self._timer_task = asyncio.create_task(self._run_timer(run_immediately))
        if self.detector is not None and self.config.use_objects:
            self._objects_task = asyncio.create_task(self._run_object_timer())
        logger.info(f"Analysis loop started (interval={self.config.interval}s)")

    def pause(self):
        """Stop the timer, cancel speech and the pass in flight, clear the description."""
        self._running = False
        self._epoch += 1

        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in (self._timer_task, self._objects_task, self._pass_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._timer_task = None
        self._objects_task = None
        self._pass_task = None

        self._state = AnalysisState.IDLE
        self._objects_busy = False
        self.speech.cancel()
        self.can_enhance = False
        self._set_description("")
        self._set_objects([])
        logger.info("Analysis loop paused")

    def resume(self, run_immediately: Optional[bool] = None):
        self.start(run_immediately=run_immediately)

    def toggle(self) -> bool:
        """Pause when running, resume when paused. Returns the new running flag."""
        if self._running:
            self.pause()
        else:
            self.resume()
        return self._running

    async def aclose(self):
        """Pause and wait for cancelled tasks to unwind."""
        tasks = [t for t in (self._timer_task, self._objects_task, self._pass_task) if t is not None]
        self.pause()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.stats.end_time = self.stats.end_time or datetime.now()

    async def run(self, duration: Optional[float] = None):
        """Run until ``duration`` elapses (forever when None), then close."""
        self._done = asyncio.Event()
        self.start()
        waiter = asyncio.create_task(self._done.wait())
        try:
            await asyncio.wait([waiter], timeout=duration)
        finally:
            waiter.cancel()
            await self.aclose()

    def stop(self):
        """End a ``run()`` in progress."""
        if self._done is not None:
            self._done.set()

    # -- timers -----------------------------------------------------------

    async def _run_timer(self, run_immediately: bool):
        if run_immediately:
            self.tick()
        while True:
            await asyncio.sleep(self.config.interval)
            self.tick()

    async def _run_object_timer(self):
        while True:
            await self.refresh_objects()
            await asyncio.sleep(self.config.object_interval)

    def tick(self) -> Optional[asyncio.Task]:
        """Start a pass unless one is already in flight."""
        self.stats.ticks += 1
        if self.busy:
            self.stats.ticks_dropped += 1
            logger.debug("Tick dropped: analysis already in flight")
            return None
        return self._launch(enhance=False)

    async def refresh_objects(self) -> bool:
        """Refresh the object overlay; skipped while a refresh is running."""
        if self.detector is None or self._objects_busy:
            return False
        self._objects_busy = True
        epoch = self._epoch
        try:
            objects = await self.detector.detect()
        except Exception as e:
            logger.warning(f"Object detection failed: {e}")
            return False
        finally:
            if not self._stale(epoch):
                self._objects_busy = False

        if self._stale(epoch):
            return False
        self.stats.object_refreshes += 1
        self._set_objects(objects)
        return True

    # -- passes -----------------------------------------------------------

    async def describe_now(self, enhance: bool = False) -> bool:
        """Run one pass on demand, sharing the in-flight guard with the timer.

        Returns True when a description was produced and spoken. Returns
        False when the pass was skipped, failed, or was cancelled by pause.
        """
        if enhance and not self.can_enhance:
            raise EnhanceUnavailableError("Describe the scene before enhancing it")
        if self.busy:
            logger.debug("Manual describe skipped: analysis already in flight")
            return False

        task = self._launch(enhance=enhance)
        await asyncio.wait([task])
        return not task.cancelled() and task.result()

    def _launch(self, enhance: bool) -> asyncio.Task:
        self._state = AnalysisState.IN_FLIGHT
        task = asyncio.create_task(self._run_pass(self._epoch, enhance))
        self._pass_task = task
        return task

    async def _run_pass(self, epoch: int, enhance: bool) -> bool:
        self.stats.passes_started += 1
        start_time = time.time()
        try:
            ok = await self._analyze(epoch, enhance)
        except asyncio.CancelledError:
            logger.debug("Analysis pass cancelled")
            raise
        except Exception as e:
            logger.exception(f"Analysis pass failed: {e}")
            self.notifier.notify("Error", str(e) or type(e).__name__, level="error")
            ok = False
        finally:
            if not self._stale(epoch):
                self._state = AnalysisState.IDLE
                self._pass_task = None

        if not self._stale(epoch):
            self.stats.record_pass(time.time() - start_time)
        if ok:
            self.stats.passes_completed += 1
        elif not self._stale(epoch):
            self.stats.passes_failed += 1
        return ok

    async def _analyze(self, epoch: int, enhance: bool) -> bool:
        try:
            blob = self.frames.capture()
        except CameraPermissionError as e:
            logger.error(f"Camera error: {e}")
            self.notifier.overlay(str(e))
            self.fatal_error = e
            self.pause()
            if self._done is not None:
                self._done.set()
            return False
        except FrameCaptureError as e:
            logger.warning(f"Frame capture failed: {e}")
            blob = None

        if blob is None:
            self.notifier.notify("Error", "Could not capture frame.", level="error")
            return False

        labels: List[str] = []
        if self.detector is not None:
            objects = await self.detector.detect()
            if self._stale(epoch):
                return False
            self._set_objects(objects)
            labels = [obj.label for obj in objects]

        try:
            with self.metrics.track("describe"):
                if enhance:
                    text = await self.describer.enhance(blob, self.description, labels)
                else:
                    text = await self.describer.describe(blob, labels or None)
        except DescriptionServiceError as e:
            logger.error(f"AI Error: {e}")
            self.notifier.notify("AI Error", "Failed to generate description.", level="error")
            return False

        if self._stale(epoch):
            self.stats.responses_discarded += 1
            logger.info("Discarding description that arrived after pause")
            return False

        self._set_description(text)
        self.can_enhance = True
        logger.info(f"Scene: {text}")

        try:
            with self.metrics.track("speak"):
                await self.speech.speak(text)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Speech error: {e}")
            self.notifier.notify("Speech Error", str(e), level="warning")
        return True
