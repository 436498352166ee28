#!/usr/bin/env python3
"""
模擬探測目標
開發模式 (development.mock_devices) 下不需要真實硬體即可執行完整流程
"""

import threading
import time
from datetime import datetime
from typing import Dict, Any, List
import numpy as np
from src.probe_target import ProbeTarget


class SimulatedProbeTarget(ProbeTarget):
    """以延遲模擬耗時探測的裝置

    會記錄每個操作的呼叫次數與順序，方便檢查工作執行緒的呼叫順序。
    """

    def __init__(self, name: str = "Simulated Device", prepare_delay: float = 0.05,
                 measure_delay: float = 0.2, fail_prepare: bool = False,
                 fail_measure: bool = False, usable: bool = True):
        super().__init__(name)
        self.prepare_delay = prepare_delay
        self.measure_delay = measure_delay
        self.fail_prepare = fail_prepare
        self.fail_measure = fail_measure
        self.usable = usable

        self.call_log: List[str] = []
        self.prepare_calls = 0
        self.measure_calls = 0
        self.cleanup_calls = 0
        self.max_concurrent_measures = 0

        self._active_measures = 0
        self._counter_lock = threading.Lock()
        self._rng = np.random.default_rng()
        self._results: Dict[str, Any] = {}

    def prepare(self) -> None:
        self._record("prepare")
        time.sleep(self.prepare_delay)
        if self.fail_prepare:
            raise self._fail("prepare", "模擬準備失敗")
        self.error = None

    def measure(self) -> None:
        with self._counter_lock:
            self._record_locked("measure")
            self._active_measures += 1
            self.max_concurrent_measures = max(self.max_concurrent_measures, self._active_measures)

        try:
            time.sleep(self.measure_delay)
            if self.fail_measure:
                raise self._fail("measure", "模擬測量失敗")

            scale = 4.0 if self.heavy_mode else 1.0
            results = {
                'copy_rate': float(self._rng.normal(8000.0, 200.0)) * scale,
                'float_rate': float(self._rng.normal(50000.0, 1000.0)) * scale,
                'double_rate': float(self._rng.normal(25000.0, 500.0)) * scale,
                'int32_rate': float(self._rng.normal(30000.0, 800.0)) * scale,
                'heavy_mode': self.heavy_mode,
                'measured_at': datetime.now().isoformat()
            }
            with self._counter_lock:
                self._results = results
            self.error = None
        finally:
            with self._counter_lock:
                self._active_measures -= 1

    def cleanup(self) -> None:
        self._record("cleanup")

    def read_info(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'simulated': True,
            'prepare_delay': self.prepare_delay,
            'measure_delay': self.measure_delay
        }

    def get_results(self) -> Dict[str, Any]:
        with self._counter_lock:
            return dict(self._results)

    def is_usable(self) -> bool:
        return self.usable

    def _record(self, operation: str) -> None:
        with self._counter_lock:
            self._record_locked(operation)

    def _record_locked(self, operation: str) -> None:
        self.call_log.append(operation)
        if operation == "prepare":
            self.prepare_calls += 1
        elif operation == "measure":
            self.measure_calls += 1
        elif operation == "cleanup":
            self.cleanup_calls += 1
