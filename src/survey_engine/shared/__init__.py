"""
Shared infrastructure: logging, database sessions and exceptions.
"""
