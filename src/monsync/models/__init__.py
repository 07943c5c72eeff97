"""Data models for monsync."""

from monsync.models.diagnostics import Diagnostic, Diagnostics, Severity
from monsync.models.monitor import (
    AlertContact,
    AlertContactSpec,
    APIAssertions,
    AssertionCheck,
    DesiredMonitor,
    DNSRecords,
    IPVersion,
    KeywordCaseType,
    MonitorConfig,
    MonitorState,
    MonitorType,
    PostValueType,
    UDPSettings,
)
from monsync.models.remote import MonitorRequest, MonitorSnapshot
from monsync.models.values import CLEARED, UNKNOWN, UNMANAGED, Value

__all__ = [
    "CLEARED",
    "UNKNOWN",
    "UNMANAGED",
    "APIAssertions",
    "AlertContact",
    "AlertContactSpec",
    "AssertionCheck",
    "DNSRecords",
    "DesiredMonitor",
    "Diagnostic",
    "Diagnostics",
    "IPVersion",
    "KeywordCaseType",
    "MonitorConfig",
    "MonitorRequest",
    "MonitorSnapshot",
    "MonitorState",
    "MonitorType",
    "PostValueType",
    "Severity",
    "UDPSettings",
    "Value",
]
