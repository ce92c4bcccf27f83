"""
Catalog access and caching
"""
