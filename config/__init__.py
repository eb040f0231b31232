"""
Configuration module for the Guesty housekeeping sync system.
"""

from .settings import guesty_config, supabase_config, app_config

__all__ = ['guesty_config', 'supabase_config', 'app_config']
