"""
Utility modules for the tango crawler.
"""
