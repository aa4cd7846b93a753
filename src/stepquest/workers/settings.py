"""arq worker settings module.

Import path for arq CLI: arq stepquest.workers.settings.WorkerSettings
"""

from __future__ import annotations

from stepquest.workers.scheduler import WorkerSettings

__all__ = ["WorkerSettings"]
