"""
Workflow engines.
"""
