"""
Guesty Housekeeping Sync.

Pulls reservations from the Guesty API into Supabase, derives a cleaning
schedule for every stay and keeps the pipeline observable through sync logs,
API usage metrics and health probes.
"""

__version__ = "1.0.0"
__author__ = "Housekeeping Automation Team"
__description__ = "Guesty reservation sync and housekeeping task scheduling"
