"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskType, TaskStatus, TaskResult)
- task_store.py: collection-backed storage with upsert-by-id semantics
- task_processor.py: prompt building + completion call + status transitions
"""
