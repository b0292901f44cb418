"""Reporting module: AI report generation from Search Console data."""

from src.modules.reporting.report_engine import (
    REPORT_TEMPLATES,
    ReportEngine,
    ReportTemplate,
    build_report_prompt,
)

__all__ = [
    "REPORT_TEMPLATES",
    "ReportEngine",
    "ReportTemplate",
    "build_report_prompt",
]
