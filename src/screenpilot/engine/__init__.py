"""Instruction execution engine."""

from screenpilot.engine.loop import AgentLoop, InstructionOutcome, LoopLimits, derive_status, fixed_delay

__all__ = ["AgentLoop", "InstructionOutcome", "LoopLimits", "derive_status", "fixed_delay"]
