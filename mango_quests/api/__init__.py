"""
HTTP transport for the quest service.
"""
