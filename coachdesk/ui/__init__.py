"""
UI package for CoachDesk.

This package contains the Flask JSON API and the Tkinter desktop editor. The
desktop editor lives in ``coachdesk.ui.tkinter_app`` and is imported on demand
so the web API runs on interpreters built without Tk.
"""
from .web_app import create_app, run_web_app, WebAppState

__all__ = ["create_app", "run_web_app", "WebAppState"]
