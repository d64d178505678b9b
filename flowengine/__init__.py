"""
FlowEngine - an async graph state machine for model and tool pipelines.

Nodes follow a prep / execute / post lifecycle, pick their successor by
a named action, and can suspend a run for tool approval or debugging.
"""

__version__ = "1.0.0"
