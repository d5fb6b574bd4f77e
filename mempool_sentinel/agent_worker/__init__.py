"""
Agent worker package: 24/7 supervision of the mempool session.

Restarts the session after transport failures with a configurable delay and
coordinates shutdown.
"""

from mempool_sentinel.agent_worker.supervisor import RetryPolicy, Supervisor, SupervisorState

__all__ = ["RetryPolicy", "Supervisor", "SupervisorState"]
