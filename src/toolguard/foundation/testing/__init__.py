"""Testing utilities: a manual clock and scripted base handlers."""

from .doubles import FakeClock, Invocation, ScriptedHandler

__all__ = ["FakeClock", "Invocation", "ScriptedHandler"]
