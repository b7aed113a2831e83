from .concurrency import AdmissionPort, Weight
from .link_adapter import LinkAdapterPort
from .link_checker import LinkCheckerPort
from .worker_pool import RunScopePort, Task, TaskBody, TaskOutcome, WorkerPoolPort

__all__ = [
    "AdmissionPort",
    "LinkAdapterPort",
    "LinkCheckerPort",
    "RunScopePort",
    "Task",
    "TaskBody",
    "TaskOutcome",
    "Weight",
    "WorkerPoolPort",
]
