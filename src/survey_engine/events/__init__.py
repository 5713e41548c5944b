"""
Survey events, locations and invitations.
"""
