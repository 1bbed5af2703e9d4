"""
Control database models
"""
