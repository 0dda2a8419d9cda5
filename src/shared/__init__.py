"""
Shared Layer - Cross-Cutting Concerns
Domain contracts, configuration, error taxonomy, observability and resilience utilities
"""
