"""
Gumboard real-time relay

Standalone process that lets browser clients join board rooms over a
WebSocket and fans out note mutation events posted by the API server.
"""

__version__ = "0.1.0"
