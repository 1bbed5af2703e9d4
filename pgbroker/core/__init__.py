"""
Core FastAPI dependencies
"""
