#!/usr/bin/env python3
"""
探測工作執行緒控制代碼
提供給上層的 trigger / trigger_and_wait / shutdown 介面，並負責 Worker 的生命週期
"""

import threading
import weakref
from typing import Any, Callable, Dict, Optional
from src.probe_target import ProbeTarget
from src.unified_logger import get_logger
from .probe_worker import NO_TAG, ProbeWorker, ProtocolMisuseError, WorkerState


# 控制代碼在 Worker 自身執行緒中被回收時，Worker 無法在該處等待自己結束，
# 在此保留參照直到程序結束，避免執行中的 QThread 被刪除
_orphaned_workers = set()


def _stop_worker(worker: ProbeWorker, shutdown_lock: threading.Lock) -> None:
    """終止 Worker 並等待背景執行緒結束 (未啟動時直接清理)"""
    started = worker.request_abort()

    with shutdown_lock:
        if started:
            worker.wait()
        else:
            worker.finalize_unstarted()


def _release_dropped_worker(worker: ProbeWorker, shutdown_lock: threading.Lock) -> None:
    """控制代碼未 shutdown 就被回收時的終止程序"""
    worker.logger.warning(f"控制代碼未呼叫 shutdown 即被回收, 終止 Worker {worker.worker_name}")
    if worker.in_worker_thread():
        _orphaned_workers.add(worker)
        worker.signal_abort()
        return
    _stop_worker(worker, shutdown_lock)


class WorkerHandle:
    """探測Worker控制代碼

    Worker 在第一次 trigger 時才啟動；shutdown 會等待背景執行緒完全結束後才返回。
    未呼叫 shutdown 就被回收的控制代碼 (以及程序結束時仍存在的控制代碼)
    會由 weakref.finalize 完成同樣的終止程序。

    使用範例:
        with WorkerHandle(target) as handle:
            handle.on_completed(lambda tag: print(tag))
            handle.trigger_and_wait(0)
    """

    def __init__(self, target: ProbeTarget, worker_name: Optional[str] = None):
        self._worker = ProbeWorker(target, worker_name)
        self._shutdown_lock = threading.Lock()
        self.logger = get_logger(f"WorkerHandle.{self._worker.worker_name}")
        # 回呼參數不能引用 self，否則控制代碼永遠不會被回收
        self._finalizer = weakref.finalize(self, _release_dropped_worker, self._worker, self._shutdown_lock)

    @property
    def target(self) -> ProbeTarget:
        return self._worker.target

    @property
    def worker(self) -> ProbeWorker:
        return self._worker

    @property
    def state(self) -> WorkerState:
        return self._worker.state

    def start(self) -> None:
        """明確啟動 Worker (trigger 也會自動啟動)"""
        self._worker.start()

    def on_completed(self, callback: Optional[Callable[[Any], None]]) -> None:
        """訂閱完成通知 (每個 Worker 只有一個訂閱者，後設定者取代前者)

        Args:
            callback: 以標籤為參數的回呼，經由 ProbeWorker.completed 信號在 Worker 執行緒中呼叫
        """
        self._worker.set_completion_callback(callback)

    def trigger(self, tag: Any = NO_TAG) -> int:
        """要求一次新的測量，只等待 Worker 就緒，不等待測量結束

        Args:
            tag: 關聯標籤；測量進行中再次 trigger 會覆蓋尚未開始的標籤

        Returns:
            int: 提交序號，可交給 wait_started / wait_finished
        """
        self.logger.debug(f"觸發探測, 標籤 {tag}")
        return self._worker.submit(tag)

    def trigger_and_wait(self, tag: Any = NO_TAG) -> bool:
        """要求一次新的測量並等待其完成

        NO_TAG 只等待 Worker 就緒。

        Returns:
            bool: 測量完成返回 True；Worker 在等待期間被終止返回 False

        Raises:
            ProtocolMisuseError: 在 Worker 自身的執行緒 (例如完成回呼) 中等待測量
        """
        if tag != NO_TAG and self._worker.in_worker_thread():
            raise ProtocolMisuseError("不能在完成回呼中等待測量結束，請改用 trigger")

        ticket = self.trigger(tag)
        if tag == NO_TAG:
            return self._worker.is_ready

        self.logger.debug(f"等待標籤 {tag} 的測量結果...")
        finished = self._worker.wait_finished(ticket)
        self.logger.debug(f"標籤 {tag} 等待結束 (完成: {finished})")
        return finished

    def wait_started(self, ticket: int) -> bool:
        """等待指定提交序號之後的下一次測量開始"""
        return self._worker.wait_started(ticket)

    def wait_finished(self, ticket: int) -> bool:
        """等待指定提交序號之後開始的測量完成"""
        return self._worker.wait_finished(ticket)

    def shutdown(self) -> None:
        """終止 Worker 並等待其完全結束 (可重複呼叫)

        Raises:
            ProtocolMisuseError: 在 Worker 自身的執行緒 (例如完成回呼) 中呼叫
        """
        _stop_worker(self._worker, self._shutdown_lock)
        self._finalizer.detach()

    def is_shut_down(self) -> bool:
        return self._worker.state == WorkerState.TERMINATED

    def get_info(self) -> Dict[str, Any]:
        """獲取Worker信息"""
        return self._worker.get_worker_info()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
