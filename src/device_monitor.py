#!/usr/bin/env python3
"""
裝置效能監控模組
管理每個裝置的探測 Worker，處理定時更新與使用者觸發的測量
"""

from typing import Any, Dict, List, Optional
from PyQt6.QtCore import QObject, QTimer, pyqtSignal, pyqtSlot
from src.config import ConfigManager, get_config
from src.probe_target import ProbeTarget
from src.unified_logger import get_logger
from src.workers import WorkerHandle


class DeviceMonitor(QObject):
    """裝置效能監控器"""

    # 信號
    device_list_changed = pyqtSignal(list)  # 設備列表變更
    active_device_changed = pyqtSignal(int)  # 當前設備變更 (index)
    performance_updated = pyqtSignal(int)  # 任一設備測量完成 (index)
    active_performance_updated = pyqtSignal(int)  # 當前設備測量完成 (index)
    loading_progress = pyqtSignal(str)  # 載入進度訊息

    # Worker 執行緒發出，經由佇列連接回到監控器所在執行緒
    _probe_completed = pyqtSignal(object)

    def __init__(self, config: Optional[ConfigManager] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.logger = get_logger("DeviceMonitor")
        self.config = config or get_config()

        self.handles: List[WorkerHandle] = []
        self.active_index = -1

        probe_config = self.config.get_probe_config()
        self.auto_update = probe_config.get('auto_update', True)
        self.heavy_mode = probe_config.get('heavy_mode', False)
        self.refresh_interval_ms = probe_config.get('refresh_interval_ms', 2000)

        self.update_timer = QTimer(self)
        self.update_timer.timeout.connect(self._on_update_timer)
        self._probe_completed.connect(self._on_probe_completed)

    def load_devices(self, targets: List[ProbeTarget]) -> int:
        """為每個可用裝置建立 Worker 並取得第一次測量結果

        Args:
            targets: 探測目標列表

        Returns:
            int: 成功載入的裝置數量
        """
        for target in targets:
            if not target.is_usable():
                self.logger.info(f"略過不可用的裝置: {target.name}")
                continue

            index = len(self.handles)
            message = f"正在取得 {target.name} 的資訊 ..."
            self.loading_progress.emit(message)
            self.logger.info(message)

            handle = WorkerHandle(target, f"{index}:{target.name}")
            handle.trigger_and_wait(index)
            handle.on_completed(self._probe_completed.emit)
            self.handles.append(handle)

            if not self.get_device_status(index)['available']:
                self.logger.warning(f"裝置 {target.name} 初次探測失敗, 顯示為 unavailable")

        if self.handles and self.active_index < 0:
            self.active_index = 0
            self.active_device_changed.emit(0)

        self.logger.info(f"已載入 {len(self.handles)} 個裝置")
        self._update_device_list()
        return len(self.handles)

    def start_auto_refresh(self, interval_ms: Optional[int] = None):
        """開始定時更新當前裝置的效能資料"""
        if interval_ms is not None:
            self.refresh_interval_ms = interval_ms
        self.update_timer.start(self.refresh_interval_ms)
        self.logger.info(f"開始定時更新，間隔 {self.refresh_interval_ms}ms")

    def stop_auto_refresh(self):
        """停止定時更新"""
        self.update_timer.stop()
        self.logger.info("停止定時更新")

    def set_auto_update(self, enabled: bool):
        """開啟或關閉自動更新 (定時與切換裝置時的測量)"""
        self.auto_update = enabled
        self.logger.info(f"自動更新: {'開啟' if enabled else '關閉'}")

    def set_heavy_mode(self, enabled: bool):
        """設定重負載測量模式，下一次定時更新時生效"""
        self.heavy_mode = enabled
        self.logger.info(f"重負載模式: {'開啟' if enabled else '關閉'}")

    def set_active_device(self, index: int) -> bool:
        """切換當前裝置，自動更新開啟時立即觸發測量"""
        if not 0 <= index < len(self.handles):
            self.logger.warning(f"無效的裝置索引: {index}")
            return False

        self.active_index = index
        self.active_device_changed.emit(index)
        self._update_device_list()

        if self.auto_update:
            self.logger.debug(f"切換裝置 -> 更新裝置 {index} 的效能資料")
            self.handles[index].trigger(index)
        return True

    def refresh_device(self, index: int, wait: bool = False) -> bool:
        """手動觸發指定裝置的測量

        Args:
            index: 裝置索引
            wait: 是否等待測量完成

        Returns:
            bool: 是否成功觸發 (wait 時表示是否完成)
        """
        if not 0 <= index < len(self.handles):
            self.logger.warning(f"無效的裝置索引: {index}")
            return False

        handle = self.handles[index]
        if wait:
            return handle.trigger_and_wait(index)
        handle.trigger(index)
        return True

    def get_active_device(self) -> Optional[WorkerHandle]:
        """獲取當前裝置的 Worker 控制代碼"""
        if 0 <= self.active_index < len(self.handles):
            return self.handles[self.active_index]
        return None

    def get_device_count(self) -> int:
        return len(self.handles)

    def get_device_status(self, index: int) -> Dict[str, Any]:
        """獲取裝置狀態與最新測量結果

        Returns:
            Dict: 裝置狀態；最近一次探測失敗時 status 為 "unavailable"
        """
        handle = self.handles[index]
        target = handle.target
        worker_info = handle.get_info()

        error = worker_info['error'] or (str(target.error) if target.error else None)
        available = error is None

        return {
            'index': index,
            'name': target.name,
            'available': available,
            'status': "available" if available else "unavailable",
            'state': worker_info['state'],
            'last_tag': worker_info['last_tag'],
            'run_count': worker_info['run_count'],
            'error': error,
            'results': target.get_results() if available else {},
            'info': target.read_info()
        }

    def shutdown(self):
        """停止定時器並終止所有 Worker"""
        self.update_timer.stop()

        handles = self.handles
        self.handles = []
        self.active_index = -1

        for handle in handles:
            handle.on_completed(None)
            handle.shutdown()

        self.logger.info(f"已終止 {len(handles)} 個裝置 Worker")
        self._update_device_list()

    @pyqtSlot()
    def _on_update_timer(self):
        """定時更新當前裝置的效能資料"""
        handle = self.get_active_device()
        if handle is None:
            return

        if self.auto_update:
            handle.target.heavy_mode = self.heavy_mode
            self.logger.debug(
                f"定時觸發 -> 更新裝置 {self.active_index} 的效能資料 (重負載: {self.heavy_mode})"
            )
            handle.trigger(self.active_index)
        else:
            self.logger.debug("定時觸發 -> 略過更新")

    @pyqtSlot(object)
    def _on_probe_completed(self, tag):
        """處理 Worker 的完成通知"""
        index = tag
        if not isinstance(index, int) or not 0 <= index < len(self.handles):
            self.logger.debug(f"忽略過期的完成通知: {tag}")
            return

        status = self.get_device_status(index)
        if not status['available']:
            self.logger.warning(f"裝置 {status['name']} 探測失敗: {status['error']}")

        self.performance_updated.emit(index)
        if index == self.active_index:
            self.active_performance_updated.emit(index)

    def _update_device_list(self):
        """更新設備列表並發出信號"""
        device_list = []
        for index, handle in enumerate(self.handles):
            status = self.get_device_status(index)
            device_list.append({
                'index': index,
                'name': status['name'],
                'status': status['status'],
                'is_active': index == self.active_index
            })

        self.device_list_changed.emit(device_list)


# 全域裝置監控器實例
_device_monitor = None

def get_device_monitor() -> DeviceMonitor:
    """獲取全域裝置監控器實例"""
    global _device_monitor
    if _device_monitor is None:
        _device_monitor = DeviceMonitor()
    return _device_monitor
