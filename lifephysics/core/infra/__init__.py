"""
Infrastructure orchestration for Life Physics.

``ApplicationContext`` wires configuration, the database, the event bus and
cloud sync, and opens trackers for guest or signed-in identities.
"""

from .application_context import ApplicationContext

__all__ = ["ApplicationContext"]
