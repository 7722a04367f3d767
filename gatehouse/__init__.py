"""
gatehouse - authentication, role-gated access and audit logging.
"""

__version__ = "0.1.0"
