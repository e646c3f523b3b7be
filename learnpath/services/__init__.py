"""
Engine services
"""
