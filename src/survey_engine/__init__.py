"""
NPS survey lifecycle decision engine.

Decides who may be surveyed, over which channel, how completed responses are
classified, which thank-you content and automation rules apply, and how API
credentials for the trigger webhook are minted.
"""

__version__ = "0.1.0"
