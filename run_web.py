#!/usr/bin/env python3
"""
Main entry point for the CoachDesk web application.

This script launches the Flask-based JSON API. Set COACHDESK_BACKEND_URL and
COACHDESK_API_KEY to use a hosted backend; otherwise data is kept in memory.
"""
import logging
import os

from coachdesk.ui.web_app import run_web_app

if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("COACHDESK_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_web_app(
        host=os.environ.get("COACHDESK_HOST", "127.0.0.1"),
        port=int(os.environ.get("COACHDESK_PORT", "7122")),
    )
