"""SUPAWATCH — Resource Usage Extraction.

Turns the privileged metrics body into a ResourceUsage. This is not a full
exposition-format parser: it only reads the first sample of a few named
percent gauges. Swap in a real parser behind ``UsageExtractor``.
"""

import re
from abc import ABC, abstractmethod
from typing import Optional

from app.config import settings
from app.models.dashboard_models import ResourceUsage


class UsageExtractor(ABC):
    """Stable seam between the metrics payload and the dashboard."""

    @abstractmethod
    def extract(self, text: str) -> ResourceUsage:
        ...


def read_gauge(text: str, name: Optional[str]) -> float:
    """First sample value of ``name`` (with or without labels), else 0."""
    if not name:
        return 0.0
    pattern = re.compile(
        rf"^{re.escape(name)}(?:\{{[^}}]*\}})?\s+(\S+)", re.MULTILINE
    )
    match = pattern.search(text)
    if not match:
        return 0.0
    try:
        return float(match.group(1))
    except ValueError:
        return 0.0


class GaugeUsageExtractor(UsageExtractor):
    """Reads configured percent gauges; unconfigured ones stay at 0."""

    def __init__(
        self,
        cpu_gauge: Optional[str] = None,
        memory_gauge: Optional[str] = None,
        disk_gauge: Optional[str] = None,
    ):
        self.cpu_gauge = cpu_gauge
        self.memory_gauge = memory_gauge
        self.disk_gauge = disk_gauge

    @classmethod
    def from_settings(cls) -> "GaugeUsageExtractor":
        return cls(
            settings.metrics_cpu_gauge,
            settings.metrics_memory_gauge,
            settings.metrics_disk_gauge,
        )

    def extract(self, text: str) -> ResourceUsage:
        # ResourceUsage clamps each value to [0, 100]
        return ResourceUsage(
            cpu=read_gauge(text, self.cpu_gauge),
            memory=read_gauge(text, self.memory_gauge),
            disk=read_gauge(text, self.disk_gauge),
        )
