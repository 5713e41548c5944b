"""
Post-response thank-you content.
"""
