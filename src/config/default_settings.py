#!/usr/bin/env python3
"""
預設配置設定
定義所有系統組件的預設值
"""

from typing import Dict, Any

DEFAULT_CONFIG: Dict[str, Any] = {
    # 探測配置
    "probe": {
        "refresh_interval_ms": 2000,  # 定時更新週期
        "auto_update": True,
        "heavy_mode": False,
        "host": {
            "buffer_size_mb": 16,
            "heavy_buffer_size_mb": 64,
            "matrix_size": 256,
            "heavy_matrix_size": 512,
            "repeat": 3
        }
    },

    # 日誌配置
    "logging": {
        "level": "INFO",  # "DEBUG", "INFO", "WARNING", "ERROR"
    },

    # 開發配置
    "development": {
        "mock_devices": False,
        "mock_device_count": 2,
        "simulated_prepare_delay": 0.05,  # 秒
        "simulated_measure_delay": 0.2   # 秒
    }
}


# 配置驗證規則
CONFIG_VALIDATION_RULES = {
    "probe.refresh_interval_ms": {
        "type": int,
        "min": 100,
        "max": 60000
    },
    "probe.auto_update": {
        "type": bool
    },
    "probe.heavy_mode": {
        "type": bool
    },
    "probe.host.buffer_size_mb": {
        "type": int,
        "min": 1,
        "max": 1024
    },
    "probe.host.matrix_size": {
        "type": int,
        "min": 16,
        "max": 4096
    },
    "logging.level": {
        "type": str,
        "choices": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    },
    "development.mock_device_count": {
        "type": int,
        "min": 1,
        "max": 16
    }
}
