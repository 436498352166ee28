#!/usr/bin/env python3
"""
裝置探測工作執行緒
單一 QThread 負責一個探測目標的 prepare / measure / cleanup，
呼叫端透過 ready / request / run started / run finished 四個條件變數與其同步，
完成通知經由 completed 信號送出
"""

import threading
from enum import Enum
from typing import Any, Callable, Dict, Optional
from PyQt6.QtCore import QThread, Qt, pyqtSignal
from src.probe_target import ProbeError, ProbeTarget
from src.unified_logger import get_logger, log_error, log_probe_event


NO_TAG = -1  # 只等待就緒，不要求測量


class WorkerState(Enum):
    """探測工作執行緒狀態"""
    CREATED = "created"
    PREPARING = "preparing"
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


class ProtocolMisuseError(RuntimeError):
    """工作執行緒使用順序錯誤 (例如在 shutdown 之後 trigger)"""
    pass


class ProbeWorker(QThread):
    """探測工作執行緒

    所有共享欄位都由 self._lock 保護；四個條件變數共用同一把鎖，
    每個等待點都在迴圈中重新檢查條件 (包含 abort 旗標)。
    請求槽只保留最新的標籤，未被取走的舊請求會被覆蓋。

    completed 信號以 DirectConnection 在本執行緒中送出，
    送出後才廣播 run finished，因此 wait_finished 返回時通知已處理完畢。
    """

    completed = pyqtSignal(object)  # 本次執行的標籤

    def __init__(self, target: ProbeTarget, worker_name: Optional[str] = None):
        """初始化探測Worker

        Args:
            target: 探測目標 (由呼叫端持有，Worker 只借用)
            worker_name: Worker識別名稱，預設使用裝置名稱
        """
        super().__init__()
        self.target = target
        self.worker_name = worker_name or target.name
        self.setObjectName(f"ProbeWorker-{self.worker_name}")
        self.logger = get_logger(f"Worker.{self.worker_name}")

        self._lock = threading.Lock()
        self._ready_condition = threading.Condition(self._lock)
        self._request_condition = threading.Condition(self._lock)
        self._run_started = threading.Condition(self._lock)
        self._run_finished = threading.Condition(self._lock)

        self._started = False
        self._thread_ident: Optional[int] = None
        self._state = WorkerState.CREATED
        self._ready = False
        self._busy = False
        self._prepared = False
        self._abort_requested = False
        self._has_request = False
        self._pending_tag = NO_TAG
        self._last_tag = NO_TAG
        self._started_runs = 0
        self._finished_runs = 0
        self._cleaned_up = False
        self._last_error: Optional[ProbeError] = None

        self._subscriber_lock = threading.Lock()
        self._subscriber: Optional[Callable[[Any], None]] = None

    # ------------------------------------------------------------------
    # 呼叫端介面
    # ------------------------------------------------------------------

    def start(self) -> None:
        """啟動背景執行緒 (已啟動時不做任何事)

        Raises:
            ProtocolMisuseError: Worker 已被終止
        """
        with self._lock:
            self._start_locked()

    def submit(self, tag: Any) -> int:
        """提交請求並等待 Worker 就緒

        Args:
            tag: 關聯標籤，NO_TAG 表示只等待就緒

        Returns:
            int: 提交時已開始的執行次數，供 wait_finished / wait_started 使用

        Raises:
            ProtocolMisuseError: Worker 已被終止
        """
        with self._lock:
            self._start_locked()

            while not self._ready and not self._abort_requested:
                self._ready_condition.wait()

            ticket = self._started_runs
            if self._abort_requested:
                self.logger.debug(f"等待就緒期間收到終止請求, 忽略標籤 {tag}")
                return ticket

            if tag != NO_TAG:
                if self._has_request:
                    self.logger.debug(f"標籤 {self._pending_tag} 被 {tag} 取代")
                self._pending_tag = tag
                self._has_request = True
                self._request_condition.notify_all()

            return ticket

    def wait_started(self, ticket: int) -> bool:
        """等待提交後的下一次執行開始

        Returns:
            bool: 執行已開始返回 True，Worker 被終止返回 False

        Raises:
            ProtocolMisuseError: 在 Worker 自身的執行緒中等待
        """
        with self._lock:
            self._reject_worker_thread_locked("等待測量開始")
            while self._started_runs <= ticket and not self._abort_requested:
                self._run_started.wait()
            return self._started_runs > ticket

    def wait_finished(self, ticket: int) -> bool:
        """等待提交後開始的執行完成 (完成通知已送出)

        Returns:
            bool: 執行已完成返回 True，Worker 被終止返回 False

        Raises:
            ProtocolMisuseError: 在 Worker 自身的執行緒中等待 (本次執行要等回呼返回才會結束)
        """
        with self._lock:
            self._reject_worker_thread_locked("等待測量完成")
            while self._finished_runs <= ticket and not self._abort_requested:
                self._run_finished.wait()
            return self._finished_runs > ticket

    def set_completion_callback(self, callback: Optional[Callable[[Any], None]]) -> None:
        """設定 completed 信號的唯一訂閱者 (None 表示取消訂閱)

        回呼在 Worker 執行緒中被呼叫；回呼拋出的例外只記錄，不影響 Worker。
        """
        with self._subscriber_lock:
            if self._subscriber is not None:
                self.completed.disconnect(self._subscriber)
                self._subscriber = None

            if callback is not None:
                self._subscriber = _guarded_subscriber(f"Worker.{self.worker_name}", callback)
                self.completed.connect(self._subscriber, Qt.ConnectionType.DirectConnection)

    def request_abort(self) -> bool:
        """設定終止旗標並喚醒所有等待點

        Returns:
            bool: 背景執行緒是否已啟動 (已啟動時呼叫端需要 wait()，否則呼叫 finalize_unstarted())

        Raises:
            ProtocolMisuseError: 在 Worker 自身的執行緒中呼叫
        """
        with self._lock:
            self._reject_worker_thread_locked("終止 Worker")
            self._abort_locked()
            return self._started

    def signal_abort(self) -> None:
        """只設定終止旗標，不檢查呼叫執行緒也不等待結束"""
        with self._lock:
            self._abort_locked()

    def finalize_unstarted(self) -> None:
        """執行緒從未啟動時，由呼叫端直接完成清理

        Raises:
            ProtocolMisuseError: 背景執行緒已啟動 (清理由背景執行緒負責)
        """
        with self._lock:
            if self._started:
                raise ProtocolMisuseError(f"Worker {self.worker_name} 已啟動，應等待執行緒結束")
        self._finalize()

    def in_worker_thread(self) -> bool:
        """目前是否在本 Worker 的背景執行緒中"""
        with self._lock:
            return self._in_worker_thread_locked()

    # ------------------------------------------------------------------
    # 狀態查詢
    # ------------------------------------------------------------------

    @property
    def state(self) -> WorkerState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._started and self._state != WorkerState.TERMINATED

    @property
    def is_ready(self) -> bool:
        with self._lock:
            return self._ready

    @property
    def is_busy(self) -> bool:
        with self._lock:
            return self._busy

    @property
    def abort_requested(self) -> bool:
        with self._lock:
            return self._abort_requested

    @property
    def last_tag(self) -> Any:
        with self._lock:
            return self._last_tag

    @property
    def last_error(self) -> Optional[ProbeError]:
        with self._lock:
            return self._last_error

    def get_worker_info(self) -> Dict[str, Any]:
        """獲取Worker信息"""
        with self._lock:
            return {
                'name': self.worker_name,
                'state': self._state.value,
                'ready': self._ready,
                'busy': self._busy,
                'prepared': self._prepared,
                'pending_tag': self._pending_tag if self._has_request else NO_TAG,
                'last_tag': self._last_tag,
                # busy 在送出完成通知前就已清除，通知處理中即可看到本次計數
                'run_count': self._started_runs - (1 if self._busy else 0),
                'error': str(self._last_error) if self._last_error else None
            }

    # ------------------------------------------------------------------
    # 背景執行緒
    # ------------------------------------------------------------------

    def _start_locked(self) -> None:
        if self._abort_requested:
            raise ProtocolMisuseError(f"Worker {self.worker_name} 已終止，不能再次使用")
        if self._started:
            return

        self._started = True
        self._change_state(WorkerState.PREPARING)
        super().start()
        self.logger.info(f"Worker {self.worker_name} 開始執行")

    def run(self):
        """主執行方法"""
        with self._lock:
            self._thread_ident = threading.get_ident()

        try:
            prepared = self._call_target("prepare")

            with self._lock:
                self._prepared = prepared
                self._ready = True
                self._ready_condition.notify_all()

            while self._serve_one():
                pass
        finally:
            self._finalize()

    def _serve_one(self) -> bool:
        """等待並執行一次請求

        Returns:
            bool: 是否繼續執行
        """
        with self._lock:
            if self._abort_requested:
                return False

            self._change_state(WorkerState.IDLE)
            while not self._has_request and not self._abort_requested:
                self._request_condition.wait()

            if self._abort_requested:
                return False

            tag = self._pending_tag
            prepared = self._prepared
            self._has_request = False
            self._busy = True
            self._started_runs += 1
            self._change_state(WorkerState.RUNNING)
            self._run_started.notify_all()

        # 測量期間不持有鎖，新的 trigger 可以更新請求槽
        if prepared:
            self._call_target("measure")
        else:
            with self._lock:
                self._last_error = ProbeError(self.target.name, "measure", "裝置未成功準備，略過測量")

        with self._lock:
            self._busy = False
            self._last_tag = tag

        self.completed.emit(tag)

        with self._lock:
            self._finished_runs += 1
            self._run_finished.notify_all()
            return not self._abort_requested

    def _call_target(self, operation: str) -> bool:
        """呼叫探測目標的操作並記錄結果

        Returns:
            bool: 操作是否成功
        """
        try:
            getattr(self.target, operation)()
        except ProbeError as e:
            self.logger.warning(f"{operation} 失敗: {e}")
            with self._lock:
                self._last_error = e
            return False
        except Exception as e:
            log_error(f"Worker.{self.worker_name}", f"{operation} 發生未預期錯誤", e)
            with self._lock:
                self._last_error = ProbeError(self.target.name, operation, str(e))
            return False

        log_probe_event(self.target.name, operation)
        if operation == "measure":
            with self._lock:
                self._last_error = None
        return True

    def _finalize(self) -> None:
        """清理探測目標 (恰好一次) 並喚醒所有等待者"""
        with self._lock:
            if self._cleaned_up:
                return
            self._cleaned_up = True
            self._abort_requested = True
            self._ready = False
            self._change_state(WorkerState.DRAINING)

        try:
            self._call_target("cleanup")
        finally:
            with self._lock:
                self._change_state(WorkerState.TERMINATED)
                self._notify_all_locked()
            self.logger.info(f"Worker {self.worker_name} 已結束")

    def _abort_locked(self) -> None:
        if self._abort_requested:
            return
        self._abort_requested = True
        self.logger.info(f"收到終止請求 (狀態: {self._state.value})")
        self._notify_all_locked()

    def _in_worker_thread_locked(self) -> bool:
        return self._thread_ident is not None and self._thread_ident == threading.get_ident()

    def _reject_worker_thread_locked(self, operation: str) -> None:
        if self._in_worker_thread_locked():
            raise ProtocolMisuseError(f"不能在 Worker 自身的執行緒中{operation}")

    def _notify_all_locked(self) -> None:
        self._ready_condition.notify_all()
        self._request_condition.notify_all()
        self._run_started.notify_all()
        self._run_finished.notify_all()

    def _change_state(self, new_state: WorkerState) -> None:
        """改變Worker狀態 (呼叫時必須持有鎖)"""
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        self.logger.debug(f"狀態變更: {old_state.value} -> {new_state.value}")


def _guarded_subscriber(component: str, callback: Callable[[Any], None]) -> Callable[[Any], None]:
    """包裝訂閱者：例外只記錄，不傳回 Qt 的信號分派"""
    def deliver(tag):
        try:
            callback(tag)
        except Exception as e:
            log_error(component, f"完成通知處理失敗 (標籤 {tag})", e)
    return deliver
