"""
core/__init__.py

Core command interpretation and execution modules.

This package contains the central decision logic of the daemon:
- classifier: Request classification (question, complex, simple)
- runner: Host shell and program execution
- architect: Multi-step plan creation through the architecting backends
- executor: Sequential plan execution with critical-step policy
- orchestrator: Main routing between the branches above

These modules handle the high-level flow of operator requests through the system.
"""
