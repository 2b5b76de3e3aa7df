"""
Tunnel client.

ConnectionManager (client.services.manager) drives TunnelSession objects
(client.services.session), which relay requests through LocalForwarder
(client.services.forwarder) to the local target.
"""
