"""
API server package: HTTP storage API for resolved transactions.
"""
