"""LLM-driven planners: the tool-calling conversation loop and the round planner."""

from .function_handler import FunctionHandler
from .orchestrator import ConversationOrchestrator
from .round_planner import RoundPlanner

__all__ = ['FunctionHandler', 'ConversationOrchestrator', 'RoundPlanner']
