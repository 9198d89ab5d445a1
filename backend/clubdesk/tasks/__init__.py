"""Background tasks: Celery app, beat schedule and absence tasks."""
