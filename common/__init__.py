"""
Shared pieces for the tile proxy: data types and JSON logging setup.
"""
