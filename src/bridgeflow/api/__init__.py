"""Client for the cross-chain quoting and status service."""

from bridgeflow.api.client import CrossChainAPIClient

__all__ = ["CrossChainAPIClient"]
