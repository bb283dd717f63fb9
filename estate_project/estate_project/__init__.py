# Celery instance is defined in estate_project/celery.py
# celery_app becomes the task queue app for the whole project
from .celery import celery_app

# 'from estate_project import *', only exports celery_app
__all__ = ("celery_app",)

""" Workers run with "celery -A estate_project worker -l info",
    which imports this module and picks up celery_app. """
