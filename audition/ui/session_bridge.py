"""
Bridge between the Qt GUI thread and the session's asyncio event loop.

The session runs on its own loop in a worker thread. The GUI submits
operations here and receives snapshots through a queued Qt signal, so
widgets are only ever touched from the GUI thread.
"""
from __future__ import annotations
import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Coroutine, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from audition.core.engine import AudioEngine, get_default_engine
from audition.core.session import AudioControlSession
from audition.core.types import EqualizerBand, OperationResult, SessionParams

logger = logging.getLogger("Audition")


class SessionBridge(QObject):
    stateChanged = pyqtSignal(object)  # SessionSnapshot

    def __init__(self, engine: Optional[AudioEngine] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.engine = engine or get_default_engine()
        self.session = AudioControlSession(self.engine, on_state_changed=self.stateChanged.emit)
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="audition-session", daemon=True)
        self._closed = False
        self._thread.start()

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()
        self._loop.close()

    # --- Dispatch ---

    def _submit(self, coro: Coroutine[Any, Any, OperationResult]) -> Optional[Future]:
        if self._closed:
            coro.close()
            return None
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        future.add_done_callback(self._log_unexpected)
        return future

    def _call(self, func: Callable[..., Any], *args: Any) -> None:
        if not self._closed:
            self._loop.call_soon_threadsafe(func, *args)

    @staticmethod
    def _log_unexpected(future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error("Session operation crashed: %s", error, exc_info=error)

    # --- Operations ---

    def load(self, source: str, params: Optional[SessionParams] = None) -> Optional[Future]:
        return self._submit(self.session.initialize(source, params))

    def toggle_playback(self) -> Optional[Future]:
        return self._submit(self.session.toggle_playback())

    def reset_to_defaults(self) -> Optional[Future]:
        return self._submit(self.session.reset_to_defaults())

    def set_reverb_decay(self, seconds: float) -> Optional[Future]:
        return self._submit(self.session.set_reverb_decay(seconds))

    def set_playback_rate(self, rate: float) -> None:
        self._call(self.session.set_playback_rate, rate)

    def set_pitch(self, semitones: int) -> None:
        self._call(self.session.set_pitch, semitones)

    def set_equalizer_band(self, band: EqualizerBand, db: int) -> None:
        self._call(self.session.set_equalizer_band, band, db)

    def dismiss_error(self) -> None:
        self._call(self.session.dismiss_error)

    def shutdown(self, timeout: float = 2.0) -> None:
        """Tear the session down, stop the loop and close the engine."""
        if self._closed:
            return

        async def _teardown() -> None:
            self.session.teardown()

        try:
            asyncio.run_coroutine_threadsafe(_teardown(), self._loop).result(timeout)
        except Exception as e:
            logger.warning("Session teardown did not complete: %s", e)
        self._closed = True
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        self.engine.close()
