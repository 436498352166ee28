#!/usr/bin/env python3
"""
主機效能探測
使用 numpy 測量主機記憶體複製頻寬與浮點/整數運算速率
"""

import os
import platform
import threading
import time
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Any, Optional
import numpy as np
from src.probe_target import ProbeTarget


@dataclass
class PerformanceInfo:
    """效能測量結果 (0 表示尚未測量)"""
    copy_rate: float = 0.0     # MB/s
    float_rate: float = 0.0    # Mflop/s
    double_rate: float = 0.0   # Mflop/s
    int32_rate: float = 0.0    # Miop/s
    heavy_mode: bool = False
    measured_at: Optional[str] = None


class HostProbeTarget(ProbeTarget):
    """主機 CPU / 記憶體探測目標"""

    def __init__(self, name: str = "Host", buffer_size_mb: int = 16,
                 heavy_buffer_size_mb: int = 64, matrix_size: int = 256,
                 heavy_matrix_size: int = 512, repeat: int = 3):
        """初始化主機探測目標

        Args:
            name: 裝置名稱
            buffer_size_mb: 頻寬測試緩衝區大小 (MB)
            heavy_buffer_size_mb: 重負載模式的緩衝區大小 (MB)
            matrix_size: 矩陣乘法的矩陣邊長
            heavy_matrix_size: 重負載模式的矩陣邊長
            repeat: 每項測試重複次數
        """
        super().__init__(name)
        self.buffer_size_mb = buffer_size_mb
        self.heavy_buffer_size_mb = heavy_buffer_size_mb
        self.matrix_size = matrix_size
        self.heavy_matrix_size = heavy_matrix_size
        self.repeat = max(1, repeat)

        self._source: Optional[np.ndarray] = None
        self._destination: Optional[np.ndarray] = None
        self._rng = np.random.default_rng()
        self._performance = PerformanceInfo()
        self._results_lock = threading.Lock()

    @classmethod
    def from_config(cls, host_config: Dict[str, Any], name: str = "Host") -> 'HostProbeTarget':
        """根據 probe.host 配置段建立探測目標"""
        return cls(
            name=name,
            buffer_size_mb=host_config.get('buffer_size_mb', 16),
            heavy_buffer_size_mb=host_config.get('heavy_buffer_size_mb', 64),
            matrix_size=host_config.get('matrix_size', 256),
            heavy_matrix_size=host_config.get('heavy_matrix_size', 512),
            repeat=host_config.get('repeat', 3)
        )

    def prepare(self) -> None:
        """配置頻寬測試緩衝區 (依重負載模式的大小配置，一般模式只使用前段)"""
        size = max(self.buffer_size_mb, self.heavy_buffer_size_mb) * 1024 * 1024
        try:
            self._source = np.ones(size, dtype=np.uint8)
            self._destination = np.empty_like(self._source)
        except MemoryError as e:
            self._source = None
            self._destination = None
            raise self._fail("prepare", f"無法配置 {size} bytes 緩衝區: {e}")

        self.error = None
        self.logger.debug(f"已配置 {size // (1024 * 1024)} MB 測試緩衝區")

    def measure(self) -> None:
        """執行頻寬與運算測試"""
        if self._source is None or self._destination is None:
            raise self._fail("measure", "測試緩衝區未配置")

        heavy = self.heavy_mode
        try:
            performance = PerformanceInfo(
                copy_rate=self._measure_copy(heavy),
                float_rate=self._measure_matmul(np.float32, heavy),
                double_rate=self._measure_matmul(np.float64, heavy),
                int32_rate=self._measure_integer(heavy),
                heavy_mode=heavy,
                measured_at=datetime.now().isoformat()
            )
        except (MemoryError, FloatingPointError) as e:
            raise self._fail("measure", str(e))

        with self._results_lock:
            self._performance = performance
        self.error = None

    def cleanup(self) -> None:
        """釋放測試緩衝區"""
        self._source = None
        self._destination = None

    def read_info(self) -> Dict[str, Any]:
        """讀取主機靜態資訊"""
        return {
            'name': self.name,
            'processor': platform.processor() or platform.machine(),
            'logical_cores': os.cpu_count() or 0,
            'platform': platform.platform(),
            'numpy_version': np.__version__
        }

    def get_results(self) -> Dict[str, Any]:
        with self._results_lock:
            return asdict(self._performance)

    def _measure_copy(self, heavy: bool) -> float:
        """記憶體複製頻寬 (MB/s)"""
        size_mb = self.heavy_buffer_size_mb if heavy else self.buffer_size_mb
        count = size_mb * 1024 * 1024
        source = self._source[:count]
        destination = self._destination[:count]

        start = time.perf_counter()
        for _ in range(self.repeat):
            np.copyto(destination, source)
        elapsed = time.perf_counter() - start

        return self._rate(size_mb * self.repeat, elapsed)

    def _measure_matmul(self, dtype, heavy: bool) -> float:
        """矩陣乘法浮點運算速率 (Mflop/s)"""
        n = self.heavy_matrix_size if heavy else self.matrix_size
        a = self._rng.random((n, n), dtype=dtype)
        b = self._rng.random((n, n), dtype=dtype)

        start = time.perf_counter()
        for _ in range(self.repeat):
            np.matmul(a, b)
        elapsed = time.perf_counter() - start

        return self._rate(2.0 * n ** 3 * self.repeat / 1e6, elapsed)

    def _measure_integer(self, heavy: bool) -> float:
        """32位整數運算速率 (Miop/s)，每個元素一次乘法一次加法"""
        n = self.heavy_matrix_size if heavy else self.matrix_size
        values = np.arange(n * n, dtype=np.int32)

        start = time.perf_counter()
        for _ in range(self.repeat):
            values * np.int32(3) + np.int32(7)
        elapsed = time.perf_counter() - start

        return self._rate(2.0 * values.size * self.repeat / 1e6, elapsed)

    @staticmethod
    def _rate(amount: float, elapsed: float) -> float:
        if elapsed <= 0:
            return 0.0
        return amount / elapsed
