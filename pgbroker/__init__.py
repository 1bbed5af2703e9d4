"""
pgbroker - shared PostgreSQL service broker
"""
