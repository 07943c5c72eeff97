"""Port interfaces for monsync.

Protocols describing collaborators the reconciliation core consumes.
"""

from monsync.ports.monitor_api import MonitorAPIPort

__all__ = ["MonitorAPIPort"]
