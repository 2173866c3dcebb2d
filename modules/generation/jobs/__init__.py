"""
Generation job lifecycle: commands, poller and executor.
"""

from modules.generation.jobs.commands import GenerationCommands, GenerationItemInput, Submission
from modules.generation.jobs.executor import GenerationExecutor
from modules.generation.jobs.poller import JobPoller

__all__ = [
    "GenerationCommands",
    "GenerationItemInput",
    "Submission",
    "GenerationExecutor",
    "JobPoller",
]
