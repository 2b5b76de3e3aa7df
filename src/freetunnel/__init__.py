"""
FreeTunnel: reverse-tunnel client that exposes a local HTTP service
through a public tunnel server.
"""

__version__ = "0.1.0"
