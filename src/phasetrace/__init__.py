"""
phasetrace: Batched execution telemetry for autonomous agents.

Ships traces, phase spans and LLM generation records to a Langfuse-compatible
ingestion endpoint without ever blocking or crashing the agent.
"""

__version__ = "0.1.0"
