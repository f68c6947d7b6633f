"""OmniFlow automation core: tasks, workflows, scheduler and lead nurturing."""

__version__ = "0.3.0"
