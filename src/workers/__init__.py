"""
探測工作執行緒系統
提供單一背景執行緒的探測 Worker 及其控制代碼
"""

from .probe_worker import NO_TAG, ProbeWorker, ProtocolMisuseError, WorkerState
from .worker_handle import WorkerHandle

__all__ = [
    'NO_TAG',
    'ProbeWorker',
    'ProtocolMisuseError',
    'WorkerState',
    'WorkerHandle'
]
