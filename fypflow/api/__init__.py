"""
HTTP surface.
"""
