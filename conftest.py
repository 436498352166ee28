#!/usr/bin/env python3
"""
測試共用工具
提供可控制時序的探測目標與背景執行輔助函數
"""

import threading
import time
import pytest
from src.config import ConfigManager
from src.simulated_probe import SimulatedProbeTarget

WAIT_TIMEOUT = 5.0


class GatedProbeTarget(SimulatedProbeTarget):
    """prepare / measure 可被測試暫停的模擬裝置"""

    def __init__(self, name: str = "Gated Device", **kwargs):
        kwargs.setdefault('prepare_delay', 0.0)
        kwargs.setdefault('measure_delay', 0.0)
        super().__init__(name, **kwargs)
        self.prepare_gate = threading.Event()
        self.prepare_gate.set()
        self.measure_gate = threading.Event()
        self.measure_gate.set()
        self.prepare_entered = threading.Event()
        self.measure_entered = threading.Event()

    def prepare(self) -> None:
        self.prepare_entered.set()
        assert self.prepare_gate.wait(WAIT_TIMEOUT)
        super().prepare()

    def measure(self) -> None:
        self.measure_entered.set()
        assert self.measure_gate.wait(WAIT_TIMEOUT)
        super().measure()


class BackgroundCall:
    """在背景執行緒中執行可能阻塞的呼叫"""

    def __init__(self, func, *args):
        self.result = None
        self.error = None
        self._thread = threading.Thread(target=self._run, args=(func, args), daemon=True)
        self._thread.start()

    def _run(self, func, args):
        try:
            self.result = func(*args)
        except Exception as e:
            self.error = e

    def join(self, timeout: float = WAIT_TIMEOUT) -> bool:
        """等待結束，返回是否已結束"""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def is_alive(self) -> bool:
        return self._thread.is_alive()


def wait_until(predicate, timeout: float = WAIT_TIMEOUT) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def gated_target():
    return GatedProbeTarget()


@pytest.fixture
def config(tmp_path):
    return ConfigManager(str(tmp_path / "user_settings.json"))
