"""
SECURITY METRICS
================
Prometheus-backed metrics for security features.
"""

from __future__ import annotations

import os
from typing import Dict

from prometheus_client import Counter


_FEATURE_EVENTS = None


def _enabled() -> bool:
    return os.getenv("PROMETHEUS_ENABLED", "true").lower() == "true"


def _init_metrics() -> None:
    global _FEATURE_EVENTS
    if _FEATURE_EVENTS or not _enabled():
        return
    _FEATURE_EVENTS = Counter(
        "security_feature_events_total",
        "Count of security feature events",
        ["feature"],
    )


def increment_feature_event(feature: str, amount: int = 1) -> None:
    _init_metrics()
    if not _FEATURE_EVENTS:
        return
    _FEATURE_EVENTS.labels(feature=feature).inc(amount)


def _counter_value(counter, feature: str) -> int:
    return int(counter.labels(feature=feature)._value.get())


def get_feature_metrics_snapshot(features: list[str]) -> Dict[str, Dict[str, int]]:
    _init_metrics()
    snapshot: Dict[str, Dict[str, int]] = {}
    for feature in features:
        events = _counter_value(_FEATURE_EVENTS, feature) if _FEATURE_EVENTS else 0
        snapshot[feature] = {"events": events}
    return snapshot
