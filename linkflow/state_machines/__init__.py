"""
State machine infrastructure for multi-step flows.

This package provides the state machine driving account linking.
"""

from .base import FlowMachine
from .link_flow import LinkFlowMachine

__all__ = ["FlowMachine", "LinkFlowMachine"]
