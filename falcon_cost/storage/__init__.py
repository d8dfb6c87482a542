"""
Persistence for the pricing cache and the history ledger.
"""
