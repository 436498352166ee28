#!/usr/bin/env python3
"""
ProbeWorker 狀態機測試
"""

import logging
import pytest
from conftest import BackgroundCall, GatedProbeTarget, wait_until
from src.workers import NO_TAG, ProbeWorker, ProtocolMisuseError, WorkerState


def test_initial_state():
    worker = ProbeWorker(GatedProbeTarget("Idle Device"))

    assert worker.state == WorkerState.CREATED
    assert not worker.is_running
    assert not worker.is_ready
    assert not worker.is_busy
    assert worker.last_tag == NO_TAG
    assert worker.worker_name == "Idle Device"


def test_state_follows_lifecycle(gated_target):
    worker = ProbeWorker(gated_target)
    gated_target.prepare_gate.clear()

    worker.start()
    assert gated_target.prepare_entered.wait(5)
    assert worker.state == WorkerState.PREPARING
    assert worker.is_running

    gated_target.prepare_gate.set()
    assert wait_until(lambda: worker.state == WorkerState.IDLE)
    assert worker.is_ready

    gated_target.measure_gate.clear()
    ticket = worker.submit(3)
    assert worker.wait_started(ticket)
    assert worker.state == WorkerState.RUNNING
    assert worker.is_busy
    assert worker.is_ready

    gated_target.measure_gate.set()
    assert worker.wait_finished(ticket)
    assert worker.last_tag == 3
    assert not worker.is_busy

    assert worker.request_abort()
    assert worker.wait(5000)
    assert worker.state == WorkerState.TERMINATED
    assert worker.abort_requested
    assert not worker.is_running
    assert not worker.is_ready


def test_start_is_idempotent(gated_target):
    worker = ProbeWorker(gated_target)

    worker.start()
    worker.start()
    ticket = worker.submit(1)
    assert worker.wait_finished(ticket)

    assert worker.request_abort()
    assert worker.wait(5000)
    assert gated_target.prepare_calls == 1


def test_measure_never_runs_before_prepare_returns(gated_target):
    worker = ProbeWorker(gated_target)
    gated_target.prepare_gate.clear()

    submit = BackgroundCall(worker.submit, 1)
    assert gated_target.prepare_entered.wait(5)
    assert not gated_target.measure_entered.wait(0.05)
    assert gated_target.measure_calls == 0

    gated_target.prepare_gate.set()
    assert submit.join()
    assert worker.wait_finished(submit.result)
    assert worker.request_abort()
    assert worker.wait(5000)

    assert gated_target.call_log == ["prepare", "measure", "cleanup"]


def test_old_ticket_returns_immediately(gated_target):
    worker = ProbeWorker(gated_target)
    first = worker.submit(1)
    assert worker.wait_finished(first)

    second = worker.submit(2)
    assert worker.wait_finished(second)
    assert worker.wait_finished(first)
    assert worker.wait_started(first)

    assert worker.request_abort()
    assert worker.wait(5000)


def test_waiters_released_by_abort(gated_target):
    """沒有請求時等待 wait_started / wait_finished 的呼叫端會被終止喚醒"""
    worker = ProbeWorker(gated_target)
    ticket = worker.submit(NO_TAG)

    started = BackgroundCall(worker.wait_started, ticket)
    finished = BackgroundCall(worker.wait_finished, ticket)
    assert not started.join(timeout=0.05)
    assert not finished.join(timeout=0.05)

    assert worker.request_abort()
    assert worker.wait(5000)

    assert started.join() and started.result is False
    assert finished.join() and finished.result is False


def test_completion_callback_can_be_replaced(gated_target):
    worker = ProbeWorker(gated_target)
    first, second = [], []

    worker.set_completion_callback(first.append)
    assert worker.wait_finished(worker.submit(1))
    worker.set_completion_callback(second.append)
    assert worker.wait_finished(worker.submit(2))
    worker.set_completion_callback(None)
    assert worker.wait_finished(worker.submit(3))
    assert worker.request_abort()
    assert worker.wait(5000)

    assert first == [1]
    assert second == [2]


def test_unstarted_worker_finalizes_once():
    target = GatedProbeTarget()
    worker = ProbeWorker(target)

    assert worker.request_abort() is False
    worker.finalize_unstarted()
    worker.finalize_unstarted()

    assert worker.state == WorkerState.TERMINATED
    assert target.call_log == ["cleanup"]


def test_worker_info_reports_run_count(gated_target):
    worker = ProbeWorker(gated_target, "GPU 0")
    for tag in range(3):
        assert worker.wait_finished(worker.submit(tag))

    info = worker.get_worker_info()
    assert worker.request_abort()
    assert worker.wait(5000)

    assert info['name'] == "GPU 0"
    assert info['run_count'] == 3
    assert info['last_tag'] == 2
    assert info['prepared'] is True
    assert info['error'] is None


def test_completed_signal_runs_on_worker_thread(gated_target):
    worker = ProbeWorker(gated_target)
    delivered = []

    worker.set_completion_callback(lambda tag: delivered.append((tag, worker.in_worker_thread())))
    assert worker.wait_finished(worker.submit(7))
    assert worker.request_abort()
    assert worker.wait(5000)

    assert delivered == [(7, True)]
    assert not worker.in_worker_thread()
    assert not worker.isRunning()


def test_finalize_unstarted_rejected_once_started(gated_target):
    worker = ProbeWorker(gated_target)
    worker.start()

    with pytest.raises(ProtocolMisuseError):
        worker.finalize_unstarted()

    assert worker.request_abort()
    assert worker.wait(5000)
    assert gated_target.cleanup_calls == 1


def test_logged_events_use_operation_names(gated_target, caplog):
    worker = ProbeWorker(gated_target)

    with caplog.at_level(logging.INFO, logger="DeviceProbe.Probe"):
        assert worker.wait_finished(worker.submit(1))
        assert worker.request_abort()
        assert worker.wait(5000)

    events = [r.getMessage() for r in caplog.records if r.name == "DeviceProbe.Probe"]
    assert events == [f"[{gated_target.name}] {op}" for op in ("prepare", "measure", "cleanup")]
