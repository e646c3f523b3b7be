"""
learnpath - content resolution and progress aggregation engine
"""
__version__ = "1.0.0"
