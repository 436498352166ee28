#!/usr/bin/env python3
"""
配置管理器
預設配置 + 使用者覆寫值 (config/user_settings.json)，以點分路徑讀寫
"""

import json
from pathlib import Path
from typing import Dict, Any
from copy import deepcopy
from .default_settings import DEFAULT_CONFIG, CONFIG_VALIDATION_RULES
from src.unified_logger import get_logger


class ConfigValidationError(Exception):
    """配置驗證錯誤"""
    pass


def _deep_merge(base: Dict, override: Dict) -> Dict:
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _diff_from(current: Dict, default: Dict) -> Dict:
    """只留下與預設值不同的項目"""
    overrides = {}
    for key, value in current.items():
        base = default.get(key)
        if isinstance(value, dict) and isinstance(base, dict):
            nested = _diff_from(value, base)
            if nested:
                overrides[key] = nested
        elif key not in default or value != base:
            overrides[key] = value
    return overrides


class ConfigManager:
    """應用程式配置管理器"""

    def __init__(self, config_file: str = "config/user_settings.json"):
        """初始化配置管理器

        Args:
            config_file: 使用者覆寫值檔案路徑，不存在時只使用預設值
        """
        self.config_file = Path(config_file)
        self.logger = get_logger("ConfigManager")
        self._config = _deep_merge(DEFAULT_CONFIG, self._read_overrides())

    def _read_overrides(self) -> Dict[str, Any]:
        if not self.config_file.exists():
            return {}

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                overrides = json.load(f)
        except (OSError, ValueError) as e:
            self.logger.error(f"載入用戶配置失敗: {e}, 使用預設配置")
            return {}

        if not isinstance(overrides, dict):
            self.logger.error(f"用戶配置格式錯誤: {self.config_file}, 使用預設配置")
            return {}

        self.logger.info(f"已載入用戶配置: {self.config_file}")
        return overrides

    def get(self, path: str, default: Any = None) -> Any:
        """獲取配置值

        Args:
            path: 配置路徑，如 "probe.host.buffer_size_mb"
            default: 路徑不存在時的返回值
        """
        node = self._config
        for key in path.split('.'):
            if not isinstance(node, dict) or key not in node:
                self.logger.debug(f"配置路徑不存在: {path}, 返回預設值: {default}")
                return default
            node = node[key]
        return node

    def set(self, path: str, value: Any, save: bool = True) -> bool:
        """設置配置值

        Args:
            path: 配置路徑
            value: 新值，有驗證規則的路徑會先檢查
            save: 是否立即寫回使用者配置檔

        Returns:
            bool: 設置 (及保存) 是否成功
        """
        try:
            self.validate(path, value)
        except ConfigValidationError as e:
            self.logger.error(f"配置驗證失敗 {path}: {e}")
            return False

        *parents, leaf = path.split('.')
        node = self._config
        for key in parents:
            node = node.setdefault(key, {})
        node[leaf] = value
        self.logger.info(f"配置已更新: {path} = {value}")

        return self.save_config() if save else True

    @staticmethod
    def validate(path: str, value: Any) -> None:
        """依 CONFIG_VALIDATION_RULES 檢查單一配置值

        Raises:
            ConfigValidationError: 類型、範圍或選項不符
        """
        rules = CONFIG_VALIDATION_RULES.get(path)
        if not rules:
            return

        expected_type = rules.get('type')
        if expected_type is not None:
            # bool 是 int 的子類，需單獨排除
            if isinstance(value, bool) and expected_type is not bool:
                raise ConfigValidationError(f"類型錯誤: 期望 {expected_type.__name__}, 實際 bool")
            if not isinstance(value, expected_type):
                raise ConfigValidationError(f"類型錯誤: 期望 {expected_type.__name__}, 實際 {type(value).__name__}")

        if 'min' in rules and value < rules['min']:
            raise ConfigValidationError(f"值太小: {value} < {rules['min']}")
        if 'max' in rules and value > rules['max']:
            raise ConfigValidationError(f"值太大: {value} > {rules['max']}")
        if 'choices' in rules and value not in rules['choices']:
            raise ConfigValidationError(f"無效選項: {value}, 可選: {rules['choices']}")

    def save_config(self) -> bool:
        """保存與預設值不同的部分到使用者配置檔"""
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(_diff_from(self._config, DEFAULT_CONFIG), f, indent=2, ensure_ascii=False)
        except OSError as e:
            self.logger.error(f"保存配置失敗: {e}")
            return False

        self.logger.info(f"配置已保存到: {self.config_file}")
        return True

    def get_probe_config(self, section: str = None) -> Dict[str, Any]:
        """獲取探測配置 (section 如 "host")"""
        if section:
            return self.get(f"probe.{section}", {})
        return self.get("probe", {})

    def get_development_config(self) -> Dict[str, Any]:
        return self.get("development", {})


# 全局配置管理器實例
_config_manager = None

def get_config() -> ConfigManager:
    """獲取全局配置管理器實例"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager
