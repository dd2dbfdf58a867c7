"""
Monitoring: metrics and health checks.
"""
