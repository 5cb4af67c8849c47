"""Generation of typed wrapper methods for stored routines."""

from sproc_sync.wrapper.designations import STRATEGIES, DesignationStrategy, strategy_for
from sproc_sync.wrapper.generator import GenerationResult, WrapperGenerator
from sproc_sync.wrapper.routine_wrapper import RoutineWrapper

__all__ = [
    "STRATEGIES",
    "DesignationStrategy",
    "strategy_for",
    "GenerationResult",
    "WrapperGenerator",
    "RoutineWrapper",
]
