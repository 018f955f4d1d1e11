"""Prometheus-compatible metrics for GestureLink.

Exposes /metrics in Prometheus text exposition format.
No external dependencies; the text format is generated directly.

Tracked metrics:
- gesture_link_frames_total (counter)
- gesture_link_frame_latency_seconds (histogram)
- gesture_link_hand_detection_rate (gauge)
- gesture_link_gestures_total (counter, by gesture label)
- gesture_link_commands_total (counter, by command)
- gesture_link_commands_dropped_total (counter, by reason)
- gesture_link_peer_connected (gauge)
- gesture_link_hub_connections (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter


class _Histogram:
    """Simple histogram with configurable buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> str:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return "\n".join(lines)


class MetricsCollector:
    """Collects and renders pipeline and routing metrics."""

    def __init__(self):
        self._gesture_counts: Counter = Counter()
        self._command_counts: Counter = Counter()
        self._dropped_counts: Counter = Counter()
        self._frames_total = 0
        self._hand_detection_rate = 0.0
        self._peer_connected = False
        self._hub_connections = 0
        self._lock = threading.Lock()

        # Latency histogram: buckets from 1ms to 100ms
        self._latency = _Histogram(
            [0.001, 0.002, 0.005, 0.010, 0.020, 0.033, 0.050, 0.100]
        )

        self._start_time = time.time()

    def record_frame(self, latency_seconds: float, hands_detected: int):
        with self._lock:
            self._frames_total += 1
            rate = 1.0 if hands_detected > 0 else 0.0
            self._hand_detection_rate = 0.95 * self._hand_detection_rate + 0.05 * rate
        self._latency.observe(latency_seconds)

    def record_gesture(self, name: str):
        with self._lock:
            self._gesture_counts[name] += 1

    def record_command(self, name: str):
        with self._lock:
            self._command_counts[name] += 1

    def record_dropped(self, reason: str):
        with self._lock:
            self._dropped_counts[reason] += 1

    def set_peer_connected(self, connected: bool):
        self._peer_connected = connected

    def set_hub_connections(self, count: int):
        self._hub_connections = count

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        uptime = time.time() - self._start_time
        lines.append("# HELP gesture_link_uptime_seconds Time since process start")
        lines.append("# TYPE gesture_link_uptime_seconds gauge")
        lines.append(f"gesture_link_uptime_seconds {uptime:.1f}")
        lines.append("")

        with self._lock:
            lines.extend(_render_counter(
                "gesture_link_gestures_total", "Frames classified by gesture label",
                "gesture", self._gesture_counts,
            ))
            lines.extend(_render_counter(
                "gesture_link_commands_total", "Commands routed by kind",
                "command", self._command_counts,
            ))
            lines.extend(_render_counter(
                "gesture_link_commands_dropped_total", "Commands dropped by reason",
                "reason", self._dropped_counts,
            ))
            frames_total = self._frames_total
            detection_rate = self._hand_detection_rate

        lines.append(self._latency.render(
            "gesture_link_frame_latency_seconds",
            "Frame processing latency in seconds",
        ))
        lines.append("")

        lines.extend(_render_single(
            "gesture_link_frames_total", "Total frames processed", "counter", frames_total,
        ))
        lines.extend(_render_single(
            "gesture_link_hand_detection_rate", "Exponential moving average of hand detection",
            "gauge", f"{detection_rate:.4f}",
        ))
        lines.extend(_render_single(
            "gesture_link_peer_connected", "Whether a peer link is open",
            "gauge", int(self._peer_connected),
        ))
        lines.extend(_render_single(
            "gesture_link_hub_connections", "Current relay hub connections",
            "gauge", self._hub_connections,
        ))

        return "\n".join(lines) + "\n"

    @property
    def command_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._command_counts)

    @property
    def dropped_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._dropped_counts)

    @property
    def frames_total(self) -> int:
        return self._frames_total


def _render_counter(name: str, help_text: str, label: str, counts: Counter) -> list[str]:
    lines = [f"# HELP {name} {help_text}", f"# TYPE {name} counter"]
    for key, count in sorted(counts.items()):
        lines.append(f'{name}{{{label}="{key}"}} {count}')
    lines.append("")
    return lines


def _render_single(name: str, help_text: str, kind: str, value) -> list[str]:
    return [f"# HELP {name} {help_text}", f"# TYPE {name} {kind}", f"{name} {value}", ""]
