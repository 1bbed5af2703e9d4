"""
Open Service Broker v2 API
"""
