# frame_engine/dispatch.py
"""
BACKGROUND DISPATCH: Message-Based Analysis Requests
====================================================

Runs analyze() off the caller's thread and reports through a message queue,
one stream per request id:

    progress  (zero or more)   {'progress': 0.5, 'message': 'Solving'}
    complete  (terminal)       {'result': AnalysisResult}
    error     (terminal)       {'message': ..., 'code': ...}

Exactly one terminal message is emitted for every request that starts
running. cancel() only discards further messages for that id; a solve already
in flight runs to completion and its messages are dropped. The cancellation
mark lasts until that run's terminal message has been dropped.

USAGE:
------
    with AnalysisDispatcher(max_workers=2) as dispatcher:
        dispatcher.submit('req-1', structure, {'useConjugateGradient': True})
        for msg in dispatcher.iter_messages('req-1', timeout=30):
            print(msg.type, msg.data)
"""

import logging
import queue
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterator, List, Optional

from .analysis import ConfigInput, StructureInput, analyze

logger = logging.getLogger(__name__)

PROGRESS = 'progress'
COMPLETE = 'complete'
ERROR = 'error'
TERMINAL_TYPES = (COMPLETE, ERROR)


@dataclass(frozen=True)
class AnalysisMessage:
    type: str
    request_id: Hashable
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_TYPES


class AnalysisDispatcher:
    """
    Runs analyses on an executor and relays their messages.

    Parameters:
    -----------
    max_workers : int, optional
        Size of the thread pool created when no executor is given
    executor : concurrent.futures.Executor, optional
        Use an existing executor (not shut down by close())
    """

    def __init__(self, max_workers: Optional[int] = None, executor: Optional[Executor] = None):
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix='frame-analysis'
        )
        self._queues: Dict[Hashable, "queue.Queue[AnalysisMessage]"] = {}
        self._cancelled: set = set()
        self._active: Dict[Hashable, int] = {}  # runs not yet terminated, per id
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------
    def submit(self, request_id: Hashable, structure: StructureInput,
               config: ConfigInput = None) -> Future:
        """Queue one analysis; its messages go to the stream for request_id."""
        with self._lock:
            self._cancelled.discard(request_id)
            self._queues.setdefault(request_id, queue.Queue())
            self._active[request_id] = self._active.get(request_id, 0) + 1
        logger.debug("Submitting analysis %r", request_id)
        try:
            return self._executor.submit(self._run, request_id, structure, config)
        except RuntimeError:
            # executor already shut down; the run never starts
            with self._lock:
                self._active[request_id] -= 1
                if not self._active[request_id]:
                    del self._active[request_id]
            raise

    def cancel(self, request_id: Hashable) -> None:
        """Discard all further messages for request_id."""
        with self._lock:
            if request_id in self._active:
                self._cancelled.add(request_id)
            pending = self._queues.pop(request_id, None)
        if pending is not None:
            logger.debug("Cancelled analysis %r", request_id)

    def is_cancelled(self, request_id: Hashable) -> bool:
        with self._lock:
            return request_id in self._cancelled

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    def _emit(self, message: AnalysisMessage) -> None:
        request_id = message.request_id
        with self._lock:
            if message.is_terminal:
                remaining = self._active.get(request_id, 0) - 1
                if remaining > 0:
                    self._active[request_id] = remaining
                else:
                    self._active.pop(request_id, None)
            if request_id in self._cancelled:
                if request_id not in self._active:
                    self._cancelled.discard(request_id)
                return
            self._queues.setdefault(request_id, queue.Queue()).put(message)

    def get_message(self, request_id: Hashable, timeout: Optional[float] = None) -> AnalysisMessage:
        """
        Next message for request_id, blocking up to timeout seconds.

        Raises queue.Empty on timeout, KeyError for an unknown or cancelled id.
        """
        with self._lock:
            q = self._queues[request_id]
        message = q.get(timeout=timeout)
        if message.is_terminal:
            with self._lock:
                if self._queues.get(request_id) is q and q.empty():
                    del self._queues[request_id]
        return message

    def iter_messages(self, request_id: Hashable,
                      timeout: Optional[float] = None) -> Iterator[AnalysisMessage]:
        """Yield messages for request_id up to and including the terminal one."""
        while True:
            message = self.get_message(request_id, timeout=timeout)
            yield message
            if message.is_terminal:
                return

    def collect(self, request_id: Hashable, timeout: Optional[float] = None) -> List[AnalysisMessage]:
        return list(self.iter_messages(request_id, timeout=timeout))

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------
    def _run(self, request_id: Hashable, structure: StructureInput, config: ConfigInput) -> None:
        def _progress(fraction: float, text: str) -> None:
            self._emit(AnalysisMessage(PROGRESS, request_id,
                                       {'progress': fraction, 'message': text}))

        try:
            result = analyze(structure, config, progress=_progress)
        except Exception as exc:
            # analyze() reports model problems in the result; anything raised
            # here is an engine defect, still owed a terminal message
            logger.exception("Analysis %r crashed", request_id)
            self._emit(AnalysisMessage(ERROR, request_id,
                                       {'message': str(exc), 'code': type(exc).__name__}))
            return
        self._emit(AnalysisMessage(COMPLETE, request_id, {'result': result}))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def close(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> "AnalysisDispatcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
