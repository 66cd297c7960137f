"""
billing-cron: recurring maintenance jobs for the subscriber billing platform.
"""

__version__ = "1.0.0"
