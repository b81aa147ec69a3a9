"""
Task subsystem.

Components:
- cron.py: cron grammar validation + CronTimer (live recurring timer)
- task_models.py: data structures (TaskDefinition, TaskSummary, ScheduledRun)
- task_store.py: durable task definitions, persisted as JSON
- task_scheduler.py: timer registry, firing, cascade delete, startup reconciliation
"""
