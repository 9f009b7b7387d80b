"""Background task package (Celery)."""
