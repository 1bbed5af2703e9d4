"""
Control database connection
"""
