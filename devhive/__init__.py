"""
DevHive - multi-agent coordination store.

Sprints, workers, roles, messages and an append-only event log shared by
several local processes through one SQLite file per project.
"""

__version__ = "0.3.0"
