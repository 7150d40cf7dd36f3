"""
Core package for shared utilities.

Configuration, structured logging, the domain error taxonomy and token
handling shared across the courier service.
"""
