"""Monitor sync: reconciliation engine for remotely hosted uptime monitors.

Keeps a remote monitor synchronized with a locally declared desired
configuration, tolerating eventually consistent reads and migrating
persisted state across layout revisions.
"""

__version__ = "0.1.0"
