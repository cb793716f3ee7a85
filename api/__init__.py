"""
HTTP routers for the FazAI daemon: command processing, administration and health.
"""
