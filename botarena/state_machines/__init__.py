from .round_state import RoundStateMachine

__all__ = ["RoundStateMachine"]
