"""
Domain-agnostic building blocks: money, locks, state machines, notification channels
"""
