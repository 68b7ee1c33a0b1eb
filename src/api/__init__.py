"""HTTP API layer (FastAPI).

This module exposes the instance management surface under the webhook route
prefix (default `/runtime/webhooks/durabletask`) so HTTP callers can:
- list instances and query one instance's status
- terminate, rewind, or raise an event to an instance
- follow the async 202 pattern via the generated management links

The API is intentionally thin: execution and state live in the orchestration
runtime, reached through `src.runtime.client.OrchestrationClient`.
"""
