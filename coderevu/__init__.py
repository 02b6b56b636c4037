"""
CodeRevU - AI pull request reviews for connected GitHub repositories.
"""

__version__ = "0.1.0"
