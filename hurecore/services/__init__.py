"""
HURE Core - Services Package
"""
