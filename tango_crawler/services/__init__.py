"""
Crawler services: extraction, reconciliation, affiliate links and orchestration.
"""
