"""
Configuration, credentials and logging setup.
"""
