"""
Automation rules and follow-up matching.
"""
