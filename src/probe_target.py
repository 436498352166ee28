#!/usr/bin/env python3
"""
探測目標基類
提供所有可探測裝置的共同介面
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
import logging


class ProbeError(Exception):
    """裝置探測錯誤 (prepare / measure / cleanup 失敗)"""

    def __init__(self, device: str, operation: str, message: str):
        self.device = device
        self.operation = operation
        self.message = message
        super().__init__(f"[{device}] {operation} 失敗: {message}")


class ProbeTarget(ABC):
    """探測目標抽象基類

    工作執行緒只會依序呼叫 prepare -> measure (零次或多次) -> cleanup。
    失敗時應拋出 ProbeError，並透過 error 屬性保留最後一次錯誤，
    供上層顯示 "unavailable" 狀態。
    """

    def __init__(self, name: str = "Unknown Device"):
        """初始化探測目標

        Args:
            name: 裝置名稱
        """
        self.name = name
        self.heavy_mode = False
        self.error: Optional[ProbeError] = None
        self.logger = logging.getLogger(f"DeviceProbe.{self.__class__.__name__}")

    @abstractmethod
    def prepare(self) -> None:
        """準備裝置 (配置測試緩衝區等)，只會被呼叫一次

        Raises:
            ProbeError: 準備失敗
        """
        pass

    @abstractmethod
    def measure(self) -> None:
        """執行一次完整的效能測量 (頻寬 + 運算)，可能耗時數秒

        Raises:
            ProbeError: 測量失敗
        """
        pass

    @abstractmethod
    def cleanup(self) -> None:
        """釋放 prepare 配置的資源

        Raises:
            ProbeError: 清理失敗
        """
        pass

    @abstractmethod
    def read_info(self) -> Dict[str, Any]:
        """讀取裝置的靜態資訊"""
        pass

    @abstractmethod
    def get_results(self) -> Dict[str, Any]:
        """獲取最近一次測量結果"""
        pass

    def is_usable(self) -> bool:
        """裝置是否值得建立工作執行緒"""
        return True

    def is_available(self) -> bool:
        """最近一次操作是否成功"""
        return self.error is None

    def _fail(self, operation: str, message: str) -> ProbeError:
        """記錄並返回探測錯誤"""
        self.error = ProbeError(self.name, operation, message)
        return self.error
