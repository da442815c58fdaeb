"""
Console Sync - reconciliation service for the VM/Docker console.

Keeps the per-user Supabase catalog consistent with what the local
agent reports:
- Virtual machines and virtual disks
- Dockerfiles, Docker images and containers
"""

__version__ = "1.0.0"
__author__ = "Console Sync"
