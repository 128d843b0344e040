"""Agent Relay — command relay and telemetry ingestion for remote agents.

Agents hold a persistent WebSocket channel to the server, report telemetry
over it and receive operator commands through it.

Quickstart::

    python -m relay.server
    # or
    uvicorn relay.server:app --host 0.0.0.0 --port 3000
"""

__version__ = "1.0.0"
