"""Runtime-facing types (orchestration status, client capability interface).

This layer describes what the HTTP façade needs from an orchestration runtime:
- the status snapshot shape and the runtime status enumeration
- the async client protocol (status query, terminate, rewind, raise event)
- an in-memory client for tests and local development

It should remain independent from the HTTP layer (`src/api`).
"""
