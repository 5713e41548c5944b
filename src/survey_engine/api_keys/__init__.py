"""
Webhook API key issuance, verification and management.
"""
