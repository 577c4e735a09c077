"""
SSH Session Broker for ephemeral per-user containers.

This service grants every authenticated user a container reachable over SSH:
- Public-key authentication against per-user authorized_keys files
- Per-user live session counting
- Closure timestamp when a user's last session ends
- Grace period before an idle user's container becomes eligible for reclaim
- Idempotent container reclaim through the Docker engine
- Admin HTTP API and Prometheus metrics
"""

__version__ = "1.0.0"
