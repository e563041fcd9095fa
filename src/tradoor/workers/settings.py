"""arq worker settings module.

Import path for arq CLI: arq tradoor.workers.settings.WorkerSettings
"""

from __future__ import annotations

from tradoor.workers.jobs import WorkerSettings

__all__ = ["WorkerSettings"]
