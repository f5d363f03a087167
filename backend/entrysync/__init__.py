"""
Entry sync: local-first draft entry and batched synchronization for
attendance and grades.
"""

__version__ = "1.0.0"
