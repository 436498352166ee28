#!/usr/bin/env python3
"""
裝置列舉
根據配置建立要監控的探測目標列表
"""

from typing import List, Optional
from src.config import ConfigManager, get_config
from src.host_probe import HostProbeTarget
from src.probe_target import ProbeTarget
from src.simulated_probe import SimulatedProbeTarget
from src.unified_logger import get_logger


def enumerate_targets(config: Optional[ConfigManager] = None) -> List[ProbeTarget]:
    """列舉探測目標

    development.mock_devices 開啟時返回模擬裝置，否則返回主機探測目標。

    Args:
        config: 配置管理器，None 表示使用全域配置

    Returns:
        List[ProbeTarget]: 探測目標列表
    """
    config = config or get_config()
    logger = get_logger("DeviceDiscovery")

    development = config.get_development_config()
    if development.get('mock_devices', False):
        count = development.get('mock_device_count', 2)
        targets = [
            SimulatedProbeTarget(
                name=f"Simulated Device {i}",
                prepare_delay=development.get('simulated_prepare_delay', 0.05),
                measure_delay=development.get('simulated_measure_delay', 0.2)
            )
            for i in range(count)
        ]
        logger.info(f"開發模式: 建立 {len(targets)} 個模擬裝置")
        return targets

    target = HostProbeTarget.from_config(config.get_probe_config("host"))
    logger.info(f"發現主機裝置: {target.read_info().get('processor')}")
    return [target]
