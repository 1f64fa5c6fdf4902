"""Upload lifecycle for capsule.

Transient storage for uploaded files plus the retention sweep that
reclaims uploads nobody consumed.
"""

from capsule.uploads.store import UploadStore, UploadStoreError
from capsule.uploads.sweeper import PurgeSweeper, sweep_directory

__all__ = [
    "PurgeSweeper",
    "UploadStore",
    "UploadStoreError",
    "sweep_directory",
]
