"""Federated Auth Strategy

Firebase ID token authentication that reconciles verified identities
with a local user directory.
"""

__version__ = "1.0.0"
