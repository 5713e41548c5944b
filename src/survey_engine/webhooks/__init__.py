"""
Inbound survey trigger webhook.
"""
