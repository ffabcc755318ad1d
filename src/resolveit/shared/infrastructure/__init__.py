"""
Shared infrastructure: logging setup and helpers.
"""
