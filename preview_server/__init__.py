"""
Preview Server - live compiled previews of generated front-end projects.
"""

__version__ = "1.0.0"
