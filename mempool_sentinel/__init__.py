"""
Mempool Sentinel: pending-transaction timing agent for Ethereum nodes.

Subscribes to a node's pending-transaction feed over WebSocket, measures how
long each transaction waits in the mempool before it is mined, classifies the
recipient as a contract or plain account, and records the result to CSV,
per-hash JSON snapshots and a SQL store exposed over a small read API.
"""

__version__ = "0.1.0"
