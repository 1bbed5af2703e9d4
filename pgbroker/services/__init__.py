"""
Broker services
"""
