"""
Survey responses.
"""
