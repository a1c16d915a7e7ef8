"""pulsewatch — uptime checks and price tracking with deduplicated alerting."""

__version__ = "0.1.0"
