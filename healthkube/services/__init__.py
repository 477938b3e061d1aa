"""
Services package initialization.
Target resolution, correspondence, reconciliation, env patching and the run orchestrator.
"""
from .sync_engine import SyncOptions, run_sync

__all__ = ["SyncOptions", "run_sync"]
