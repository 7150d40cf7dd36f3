"""
Cache package initialization.

Provides the Redis client used for realtime tracking and chat pub/sub.
"""
