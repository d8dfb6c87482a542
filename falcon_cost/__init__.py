"""
falcon-cost: cost estimation and spend tracking for fal.ai image generation.
"""

__version__ = "0.1.0"
