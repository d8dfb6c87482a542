"""
Core modules for falcon-cost.

This package contains the model catalog, the pricing cache and the
tiered cost estimation engine.
"""
