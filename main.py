#!/usr/bin/env python3
"""
裝置效能監控系統 - 主程式
以無介面模式啟動監控器，定時記錄當前裝置的效能資料
"""

import signal
import sys


def check_dependencies():
    """檢查必要依賴套件"""
    missing_deps = []

    try:
        import PyQt6
    except ImportError:
        missing_deps.append('PyQt6')

    try:
        import numpy
    except ImportError:
        missing_deps.append('numpy')

    if missing_deps:
        print("[ERROR] 缺少必要依賴套件:")
        for dep in missing_deps:
            print(f"  - {dep}")
        print("\n請執行以下命令安裝:")
        print("pip install -e .")
        return False

    return True


def main():
    """主程式入口"""
    if not check_dependencies():
        sys.exit(1)

    from PyQt6.QtCore import QCoreApplication, QTimer
    from src.config import get_config
    from src.device_discovery import enumerate_targets
    from src.device_monitor import get_device_monitor
    from src.unified_logger import get_logger, unified_logger

    app = QCoreApplication(sys.argv)
    config = get_config()
    unified_logger.set_level(config.get("logging.level", "INFO"))
    logger = get_logger("Main")

    monitor = get_device_monitor()

    def report(index: int):
        status = monitor.get_device_status(index)
        if status['available']:
            logger.info(f"[{status['name']}] {status['results']}")
        else:
            logger.warning(f"[{status['name']}] unavailable: {status['error']}")

    monitor.active_performance_updated.connect(report)

    if monitor.load_devices(enumerate_targets(config)) == 0:
        logger.error("沒有可監控的裝置")
        sys.exit(1)

    for index in range(monitor.get_device_count()):
        report(index)

    app.aboutToQuit.connect(monitor.shutdown)
    signal.signal(signal.SIGINT, lambda *args: app.quit())

    # 讓 Python 有機會處理 Ctrl+C
    heartbeat = QTimer()
    heartbeat.timeout.connect(lambda: None)
    heartbeat.start(200)

    monitor.start_auto_refresh()
    logger.info("監控已啟動，按 Ctrl+C 結束")
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
