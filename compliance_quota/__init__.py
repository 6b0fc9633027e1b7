"""Usage metering and tier gating for compliance report generation."""

__version__ = "1.0.0"
