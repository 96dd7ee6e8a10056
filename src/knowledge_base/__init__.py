"""
Knowledge base core: bulk import pipeline and category hierarchy engine.
"""

__version__ = "0.1.0"
