"""
Innkeeper - front-desk billing and cashier-session ledger for short-stay lodging
"""
__version__ = "1.0.0"
