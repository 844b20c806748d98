"""In-process metrics collector with Prometheus text exposition."""

from __future__ import annotations

from collections import defaultdict
from threading import Lock
import time
from typing import Dict, Tuple


_lock = Lock()
_started_at = time.time()

_http_requests_total: Dict[Tuple[str, str, str], int] = defaultdict(int)
_http_request_duration_sum: Dict[Tuple[str, str], float] = defaultdict(float)
_http_request_duration_count: Dict[Tuple[str, str], int] = defaultdict(int)
_rate_limit_block_total: Dict[str, int] = defaultdict(int)
_sync_runs_total: Dict[Tuple[str, str], int] = defaultdict(int)
_sync_orders_total: Dict[str, int] = defaultdict(int)
_decisions_total: Dict[str, int] = defaultdict(int)
_notifications_total: Dict[Tuple[str, str], int] = defaultdict(int)


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _normalize_label(value: str, *, fallback: str = "unknown") -> str:
    normalized = (value or "").strip()
    return normalized or fallback


def record_http_request(*, method: str, path: str, status_code: int, duration_seconds: float) -> None:
    status = str(status_code)
    method_label = method.upper()
    path_label = path or "unknown"
    duration = max(duration_seconds, 0.0)

    with _lock:
        _http_requests_total[(method_label, path_label, status)] += 1
        _http_request_duration_sum[(method_label, path_label)] += duration
        _http_request_duration_count[(method_label, path_label)] += 1


def record_rate_limit_block(*, kind: str) -> None:
    with _lock:
        _rate_limit_block_total[_normalize_label(kind)] += 1


def record_sync_run(*, sync_type: str, status: str) -> None:
    with _lock:
        _sync_runs_total[(_normalize_label(sync_type), _normalize_label(status))] += 1


def record_sync_orders(*, outcome: str, count: int = 1) -> None:
    if count <= 0:
        return
    with _lock:
        _sync_orders_total[_normalize_label(outcome)] += int(count)


def record_decision(*, decision: str) -> None:
    with _lock:
        _decisions_total[_normalize_label(decision)] += 1


def record_notification(*, kind: str, status: str) -> None:
    with _lock:
        _notifications_total[(_normalize_label(kind), _normalize_label(status))] += 1


def render_prometheus_metrics(*, app_name: str, app_version: str, env: str) -> str:
    uptime = max(time.time() - _started_at, 0.0)

    with _lock:
        http_total = dict(_http_requests_total)
        duration_sum = dict(_http_request_duration_sum)
        duration_count = dict(_http_request_duration_count)
        rate_limit_total = dict(_rate_limit_block_total)
        sync_runs_total = dict(_sync_runs_total)
        sync_orders_total = dict(_sync_orders_total)
        decisions_total = dict(_decisions_total)
        notifications_total = dict(_notifications_total)

    lines = [
        "# HELP proofdesk_build_info Build metadata.",
        "# TYPE proofdesk_build_info gauge",
        (
            f'proofdesk_build_info{{app_name="{_escape_label(app_name)}",'
            f'version="{_escape_label(app_version)}",env="{_escape_label(env)}"}} 1'
        ),
        "# HELP proofdesk_process_uptime_seconds Process uptime in seconds.",
        "# TYPE proofdesk_process_uptime_seconds gauge",
        f"proofdesk_process_uptime_seconds {uptime:.6f}",
        "# HELP proofdesk_http_requests_total Total HTTP requests.",
        "# TYPE proofdesk_http_requests_total counter",
    ]

    for (method, path, status), value in sorted(http_total.items()):
        lines.append(
            (
                f'proofdesk_http_requests_total{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}",status="{_escape_label(status)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP proofdesk_http_request_duration_seconds Request duration summary.",
            "# TYPE proofdesk_http_request_duration_seconds summary",
        ]
    )
    for (method, path), value in sorted(duration_sum.items()):
        lines.append(
            (
                f'proofdesk_http_request_duration_seconds_sum{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value:.6f}'
            )
        )
    for (method, path), value in sorted(duration_count.items()):
        lines.append(
            (
                f'proofdesk_http_request_duration_seconds_count{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP proofdesk_rate_limit_block_total Requests blocked by rate limiting.",
            "# TYPE proofdesk_rate_limit_block_total counter",
        ]
    )
    for kind, value in sorted(rate_limit_total.items()):
        lines.append(f'proofdesk_rate_limit_block_total{{kind="{_escape_label(kind)}"}} {value}')

    lines.extend(
        [
            "# HELP proofdesk_sync_runs_total ShipStation sync runs by type and final status.",
            "# TYPE proofdesk_sync_runs_total counter",
        ]
    )
    for (sync_type, status), value in sorted(sync_runs_total.items()):
        lines.append(
            (
                f'proofdesk_sync_runs_total{{sync_type="{_escape_label(sync_type)}",'
                f'status="{_escape_label(status)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP proofdesk_sync_orders_total Orders processed by sync outcome.",
            "# TYPE proofdesk_sync_orders_total counter",
        ]
    )
    for outcome, value in sorted(sync_orders_total.items()):
        lines.append(f'proofdesk_sync_orders_total{{outcome="{_escape_label(outcome)}"}} {value}')

    lines.extend(
        [
            "# HELP proofdesk_decisions_total Customer decisions recorded.",
            "# TYPE proofdesk_decisions_total counter",
        ]
    )
    for decision, value in sorted(decisions_total.items()):
        lines.append(f'proofdesk_decisions_total{{decision="{_escape_label(decision)}"}} {value}')

    lines.extend(
        [
            "# HELP proofdesk_notifications_total Notification attempts by kind and status.",
            "# TYPE proofdesk_notifications_total counter",
        ]
    )
    for (kind, status), value in sorted(notifications_total.items()):
        lines.append(
            (
                f'proofdesk_notifications_total{{kind="{_escape_label(kind)}",'
                f'status="{_escape_label(status)}"}} {value}'
            )
        )

    lines.append("")
    return "\n".join(lines)


def reset_metrics_for_tests() -> None:
    global _started_at
    with _lock:
        _http_requests_total.clear()
        _http_request_duration_sum.clear()
        _http_request_duration_count.clear()
        _rate_limit_block_total.clear()
        _sync_runs_total.clear()
        _sync_orders_total.clear()
        _decisions_total.clear()
        _notifications_total.clear()
    _started_at = time.time()
