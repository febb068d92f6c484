#!/usr/bin/env python3
"""
Main entry point for the CoachDesk desktop pitch editor.

This script launches the Tkinter-based zone editor. Pass a club (and coach) id
to load and save that club's zones, and a team id for team zones.
"""
import argparse
import logging
import os

from coachdesk.ui.tkinter_app import run_tkinter_app

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="CoachDesk pitch zone editor")
    parser.add_argument("--club", dest="club_id")
    parser.add_argument("--coach", dest="coach_id")
    parser.add_argument("--team", dest="team_id")
    parser.add_argument("--read-only", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=os.environ.get("COACHDESK_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_tkinter_app(club_id=args.club_id, coach_id=args.coach_id,
                    team_id=args.team_id, read_only=args.read_only)
