"""
duplo: command-line client for a duplo file-storage server.
"""

__version__ = "1.0.0"
