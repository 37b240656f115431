"""
Resource Sync — Mirror a git repository of JSON resources into MongoDB.
"""

__version__ = "0.1.0"
