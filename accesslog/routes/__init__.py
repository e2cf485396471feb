# Routes package init
"""
accesslog — Demo Routes Package
================================

Route Inventory:
    - health.py:  GET /health  (service health check)
"""
