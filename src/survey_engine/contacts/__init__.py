"""
Contact persistence and snapshots.

Keep this package lightweight: importing it must not trigger ORM mapping.
"""
