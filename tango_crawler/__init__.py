"""
Tango crawler Django application.

This app crawls tango event listings, shopping search results and hotel
search pages, extracts typed records with an AI completion service and
reconciles them into the community database.
"""
