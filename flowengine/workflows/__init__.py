"""
Workflows package - Pre-built flows.
"""

from flowengine.workflows.demo import create_demo_flow, register_demo_flow

__all__ = ["create_demo_flow", "register_demo_flow"]
