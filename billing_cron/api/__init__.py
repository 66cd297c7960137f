"""
HTTP API for billing cron.
"""
