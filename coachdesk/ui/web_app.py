"""
Web application module for CoachDesk.

This module contains the Flask web server exposing JSON API endpoints for the
pitch zone editor, zone persistence, coaching rules and feed status. Feed
subscriptions run on a background asyncio loop owned by the app's state.
"""
import logging
import os
import threading
from typing import Any, Callable, Dict, Optional, Tuple

from flask import Flask, jsonify, request

from .. import __version__
from ..models import PitchZone
from ..services import (
    Feed, ResilientSubscription, RulesService, ServiceFactory, ZonePitchEditor,
    backend_from_env
)
from ..services.zone_geometry import CanvasSize, ZoneValidationError
from ..utils import APP_TITLE
from .background_loop import BackgroundLoop

logger = logging.getLogger(__name__)


class WebAppState:
    """
    Per-application state holder.

    Owns the service factory, the background loop, the open zone editors and
    the rule services of each rule list. One instance lives on each Flask app.
    Rule collections are only ever touched on the background loop, the same
    thread their feed refreshes run on.
    """

    def __init__(self, factory: Optional[ServiceFactory] = None):
        self.factory = factory or ServiceFactory(backend=backend_from_env())
        self.runner = BackgroundLoop()
        self.feeds = self.factory.create_feed_manager()
        self.methodology = self.factory.create_methodology_service()
        self.error_handler = self.factory.create_error_handler()
        self.editors: Dict[str, ZonePitchEditor] = {}
        self._rule_services: Dict[Tuple[Optional[str], Optional[str]], RulesService] = {}
        self._lock = threading.Lock()

    def _open_rules_feed(self, club_id: Optional[str],
                         team_id: Optional[str]) -> ResilientSubscription:
        if team_id:
            return self.runner.run(self.feeds.open(
                Feed.TEAM_RULES, team_id=team_id, view=f"rules:team:{team_id}"))
        return self.runner.run(self.feeds.open(
            Feed.CLUB_RULES, club_id=club_id, view=f"rules:club:{club_id}"))

    def rules_feed(self, club_id: Optional[str],
                   team_id: Optional[str]) -> Optional[ResilientSubscription]:
        if team_id:
            return self.feeds.get(Feed.TEAM_RULES, view=f"rules:team:{team_id}")
        return self.feeds.get(Feed.CLUB_RULES, view=f"rules:club:{club_id}")

    def rules_service(self, club_id: Optional[str], team_id: Optional[str],
                      coach_id: Optional[str] = None) -> RulesService:
        """
        Rule service of a list, opening its feed on first use.

        A request for a list whose feed gave up remounts the feed.
        """
        key = (None, team_id) if team_id else (club_id, None)
        with self._lock:
            service = self._rule_services.get(key)
        if service is not None:
            if coach_id and not service.coach_id:
                service.coach_id = coach_id
            subscription = self.rules_feed(club_id, team_id)
            if subscription is None or subscription.gave_up:
                logger.info("Remounting rule feed for %s", team_id or club_id)
                self._open_rules_feed(club_id, team_id)
            return service

        subscription = self._open_rules_feed(club_id, team_id)
        service = self.factory.create_rules_service(
            subscription.collection, club_id=club_id, team_id=team_id, coach_id=coach_id)
        with self._lock:
            return self._rule_services.setdefault(key, service)

    def on_loop(self, func: Callable[..., Any], *args: Any) -> Any:
        """Call a plain function on the background loop and return its result."""
        async def call():
            return func(*args)
        return self.runner.run(call())

    def shutdown(self) -> None:
        """Close every feed, then stop the background loop."""
        try:
            self.runner.run(self.feeds.close_all(), timeout=10)
        finally:
            self.runner.stop()


def _editor_payload(editor: ZonePitchEditor) -> Dict[str, Any]:
    preview = editor.preview
    modal = editor.modal
    tooltip = editor.tooltip
    return {
        "mode": editor.mode.value,
        "read_only": editor.read_only,
        "canvas": {"width": editor.canvas.width, "height": editor.canvas.height},
        "zones": [z.to_dict() for z in editor.zones],
        "selected_zone_id": editor.selected_zone_id,
        "preview": None if preview is None else {
            "rect": preview.rect.to_dict(),
            "is_valid": preview.is_valid,
            "fill": preview.fill,
            "stroke": preview.stroke,
        },
        "modal": None if modal is None else {
            "zone_id": modal.zone.id,
            "title": modal.title,
            "description": modal.description,
            "color": modal.color,
            "can_save": modal.can_save,
            "delete_label": modal.delete_label,
        },
        "tooltip": None if tooltip is None else {
            "zone_id": tooltip.zone.id,
            "text": tooltip.text,
            "x": tooltip.x,
            "y": tooltip.y,
        },
    }


def _json_body() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def _scope() -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """club_id, team_id and coach_id from the query string or JSON body."""
    data = _json_body()
    return (
        request.args.get("club_id") or data.get("club_id"),
        request.args.get("team_id") or data.get("team_id"),
        request.args.get("coach_id") or data.get("coach_id"),
    )


def create_app(factory: Optional[ServiceFactory] = None) -> Flask:
    """
    Create and configure the Flask application with API endpoints.

    Args:
        factory: Service factory to build state from (environment backend by default)

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)
    state = WebAppState(factory)
    app.extensions["coachdesk"] = state

    def _rules_for_request() -> Optional[RulesService]:
        club_id, team_id, coach_id = _scope()
        if not club_id and not team_id:
            return None
        return state.rules_service(club_id, team_id, coach_id)

    def _action_response(result):
        if result.ok:
            return jsonify({"success": True, "row": result.row})
        return jsonify({"success": False, "error": result.error}), 400

    # ==================== API Endpoints ==================== #

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify({"success": True, "app": APP_TITLE, "version": __version__})

    @app.route("/api/feeds", methods=["GET"])
    def feed_status():
        """Subscription state of every open feed."""
        return jsonify({"success": True, "feeds": state.feeds.statuses()})

    # ---------- Zone persistence ---------- #

    @app.route("/api/clubs/<club_id>/zones", methods=["GET"])
    def get_zones(club_id):
        try:
            result = state.runner.run(
                state.methodology.get_zones(club_id, request.args.get("team_id")))
            if not result.ok:
                return jsonify({"success": False, "error": result.error}), 500
            return jsonify({"success": True, "zones": [z.to_dict() for z in result.zones]})
        except Exception as e:
            logger.exception("Loading zones for %s failed", club_id)
            return jsonify({"success": False, "error": str(e)}), 500

    @app.route("/api/clubs/<club_id>/zones", methods=["PUT"])
    def save_zones(club_id):
        """Persist the full zone collection of a club or team."""
        data = _json_body()
        coach_id = data.get("coach_id")
        if not coach_id:
            return jsonify({"success": False, "error": "coach_id is required"}), 400
        try:
            zones = [PitchZone.from_dict(z) for z in data.get("zones", [])]
        except (KeyError, TypeError, ValueError) as e:
            return jsonify({"success": False, "error": f"Invalid zone payload: {e}"}), 400

        validation = state.methodology.validator.validate_collection(zones)
        if not validation.is_valid:
            payload = state.error_handler.handle_validation_result(validation)
            return jsonify(payload), 400

        try:
            result = state.runner.run(
                state.methodology.save_zones(club_id, coach_id, zones, data.get("team_id")))
        except Exception as e:
            logger.exception("Saving zones for %s failed", club_id)
            return jsonify({"success": False, "error": str(e)}), 500
        if not result.ok:
            payload = state.error_handler.handle("save_failed", result.error)
            payload["details"] = result.error
            return jsonify(payload), 500
        return jsonify({"success": True, "zone_count": len(zones)})

    @app.route("/api/zones/validate", methods=["POST"])
    def validate_zones():
        try:
            zones = [PitchZone.from_dict(z) for z in _json_body().get("zones", [])]
        except (KeyError, TypeError, ValueError) as e:
            return jsonify({"success": False, "error": f"Invalid zone payload: {e}"}), 400
        result = state.methodology.validator.validate_collection(zones)
        return jsonify({"success": True, "validation": result.to_dict()})

    # ---------- Zone editor sessions ---------- #

    def _get_editor(editor_id: str):
        editor = state.editors.get(editor_id)
        if editor is None:
            return None, (jsonify({"success": False, "error": f"Editor '{editor_id}' not found"}), 404)
        return editor, None

    @app.route("/api/editors/<editor_id>", methods=["PUT"])
    def open_editor(editor_id):
        """Create an editor (or reload an existing one) with initial zones."""
        data = _json_body()
        try:
            zones = [PitchZone.from_dict(z) for z in data.get("zones", [])]
            canvas = CanvasSize(float(data.get("width", 800)), float(data.get("height", 450)))
            if canvas.width <= 0 or canvas.height <= 0:
                raise ZoneValidationError("Canvas dimensions must be positive")
        except (KeyError, TypeError, ValueError) as e:
            return jsonify({"success": False, "error": str(e)}), 400

        editor = state.editors.get(editor_id)
        if editor is None:
            editor = state.factory.create_zone_editor(
                initial_zones=zones, read_only=bool(data.get("read_only", False)), canvas=canvas)
            state.editors[editor_id] = editor
        else:
            editor.resize(canvas.width, canvas.height)
            editor.read_only = bool(data.get("read_only", editor.read_only))
            editor.load_zones(zones)
        return jsonify({"success": True, "editor": _editor_payload(editor)})

    @app.route("/api/editors/<editor_id>", methods=["GET"])
    def get_editor(editor_id):
        editor, error = _get_editor(editor_id)
        if error:
            return error
        return jsonify({"success": True, "editor": _editor_payload(editor)})

    @app.route("/api/editors/<editor_id>", methods=["DELETE"])
    def close_editor(editor_id):
        if state.editors.pop(editor_id, None) is None:
            return jsonify({"success": False, "error": f"Editor '{editor_id}' not found"}), 404
        return jsonify({"success": True})

    @app.route("/api/editors/<editor_id>/pointer", methods=["POST"])
    def pointer_event(editor_id):
        """Forward a pointer event in canvas pixels: down, move, up, leave or click."""
        editor, error = _get_editor(editor_id)
        if error:
            return error
        data = _json_body()
        event = data.get("event")
        try:
            x = float(data.get("x", 0))
            y = float(data.get("y", 0))
        except (TypeError, ValueError):
            return jsonify({"success": False, "error": "x and y must be numbers"}), 400

        created = None
        if event == "down":
            editor.pointer_down(x, y)
        elif event == "move":
            editor.pointer_move(x, y)
        elif event == "up":
            created = editor.pointer_up()
        elif event == "leave":
            created = editor.pointer_leave()
        elif event == "click":
            editor.click_empty()
        else:
            return jsonify({"success": False, "error": f"Unknown pointer event: {event}"}), 400

        return jsonify({
            "success": True,
            "created_zone": created.to_dict() if created else None,
            "editor": _editor_payload(editor),
        })

    @app.route("/api/editors/<editor_id>/zones/<zone_id>/move", methods=["POST"])
    def move_zone(editor_id, zone_id):
        editor, error = _get_editor(editor_id)
        if error:
            return error
        if editor.get_zone(zone_id) is None:
            return jsonify(state.error_handler.handle("not_found")), 404
        data = _json_body()
        try:
            moved = editor.move_zone(zone_id, float(data["x"]), float(data["y"]))
        except (KeyError, TypeError, ValueError):
            return jsonify({"success": False, "error": "x and y are required numbers"}), 400
        if not moved:
            error_type = "read_only" if editor.read_only else "overlap"
            payload = state.error_handler.handle(error_type)
            payload["editor"] = _editor_payload(editor)
            return jsonify(payload), 400
        return jsonify({"success": True, "editor": _editor_payload(editor)})

    @app.route("/api/editors/<editor_id>/zones/<zone_id>/open", methods=["POST"])
    def open_zone(editor_id, zone_id):
        editor, error = _get_editor(editor_id)
        if error:
            return error
        if editor.get_zone(zone_id) is None:
            return jsonify(state.error_handler.handle("not_found")), 404
        if not editor.open_zone(zone_id):
            return jsonify(state.error_handler.handle("read_only")), 400
        return jsonify({"success": True, "editor": _editor_payload(editor)})

    @app.route("/api/editors/<editor_id>/modal", methods=["POST"])
    def modal_action(editor_id):
        """Edit the open modal: update draft fields, then save, delete or cancel."""
        editor, error = _get_editor(editor_id)
        if error:
            return error
        if editor.modal is None:
            return jsonify({"success": False, "error": "No zone is being edited"}), 400

        data = _json_body()
        modal = editor.modal
        if "title" in data:
            modal.title = str(data["title"])
        if "description" in data:
            modal.description = str(data["description"])
        if "color" in data:
            try:
                modal.set_color(data["color"])
            except ValueError as e:
                return jsonify({"success": False, "error": str(e)}), 400

        action = data.get("action", "update")
        if action == "save":
            if not editor.save_modal():
                return jsonify(state.error_handler.handle("empty_title")), 400
        elif action == "delete":
            deleted = editor.press_delete()
            return jsonify({"success": True, "deleted": deleted, "editor": _editor_payload(editor)})
        elif action == "cancel":
            editor.cancel_modal()
        elif action != "update":
            return jsonify({"success": False, "error": f"Unknown modal action: {action}"}), 400

        return jsonify({"success": True, "editor": _editor_payload(editor)})

    # ---------- Coaching rules ---------- #

    @app.route("/api/rules", methods=["GET"])
    def list_rules():
        """Rule list of a club (club_id) or team (team_id), kept live by its feed."""
        try:
            service = _rules_for_request()
            if service is None:
                return jsonify({"success": False, "error": "club_id or team_id is required"}), 400
            return jsonify({
                "success": True,
                "loading": service.collection.loading,
                "rules": [r.to_dict() for r in service.collection.rows],
            })
        except Exception as e:
            logger.exception("Listing rules failed")
            return jsonify({"success": False, "error": str(e)}), 500

    @app.route("/api/rules", methods=["POST"])
    def add_rule():
        service = _rules_for_request()
        if service is None:
            return jsonify({"success": False, "error": "club_id or team_id is required"}), 400
        result = state.runner.run(service.add_rule(_json_body().get("content", "")))
        return _action_response(result)

    @app.route("/api/rules/<rule_id>", methods=["PUT"])
    def save_rule(rule_id):
        service = _rules_for_request()
        if service is None:
            return jsonify({"success": False, "error": "club_id or team_id is required"}), 400
        if service.collection.get(rule_id) is None:
            return jsonify({"success": False, "error": f"Rule {rule_id} not found"}), 404
        result = state.runner.run(service.save_rule(rule_id, _json_body().get("content", "")))
        return _action_response(result)

    @app.route("/api/rules/<rule_id>", methods=["DELETE"])
    def delete_rule(rule_id):
        service = _rules_for_request()
        if service is None:
            return jsonify({"success": False, "error": "club_id or team_id is required"}), 400
        if service.collection.get(rule_id) is None:
            return jsonify({"success": False, "error": f"Rule {rule_id} not found"}), 404
        return _action_response(state.runner.run(service.delete_rule(rule_id)))

    @app.route("/api/rules/<rule_id>/toggle", methods=["POST"])
    def toggle_rule(rule_id):
        service = _rules_for_request()
        if service is None:
            return jsonify({"success": False, "error": "club_id or team_id is required"}), 400
        if service.collection.get(rule_id) is None:
            return jsonify({"success": False, "error": f"Rule {rule_id} not found"}), 404
        return _action_response(state.runner.run(service.toggle_active(rule_id)))

    @app.route("/api/rules/<rule_id>/edit", methods=["POST"])
    def edit_rule(rule_id):
        """Enter (editing=true) or leave (editing=false) edit mode for a rule."""
        service = _rules_for_request()
        if service is None:
            return jsonify({"success": False, "error": "club_id or team_id is required"}), 400
        editing = bool(_json_body().get("editing", True))

        def set_editing():
            changed = service.start_edit(rule_id) if editing else service.cancel_edit(rule_id)
            return service.collection.get(rule_id) if changed else None

        local = state.on_loop(set_editing)
        if local is None:
            return jsonify({"success": False, "error": f"Rule {rule_id} not found"}), 404
        return jsonify({"success": True, "rule": local.to_dict()})

    @app.route("/api/rules/undo", methods=["POST"])
    def undo_rule_change():
        service = _rules_for_request()
        if service is None:
            return jsonify({"success": False, "error": "club_id or team_id is required"}), 400
        return _action_response(state.runner.run(service.undo()))

    @app.route("/api/rules/redo", methods=["POST"])
    def redo_rule_change():
        service = _rules_for_request()
        if service is None:
            return jsonify({"success": False, "error": "club_id or team_id is required"}), 400
        return _action_response(state.runner.run(service.redo()))

    # ---------- Methodology ---------- #

    @app.route("/api/clubs/<club_id>/profiles", methods=["GET"])
    def get_profiles(club_id):
        result = state.runner.run(
            state.methodology.get_positional_profiles(club_id, request.args.get("team_id")))
        if not result.ok:
            return jsonify({"success": False, "error": result.error}), 500
        return jsonify({"success": True, "profiles": [p.to_dict() for p in result.profiles]})

    @app.route("/api/teams/<team_id>/training-rules/<rule_id>/toggle", methods=["POST"])
    def toggle_training_rule(team_id, rule_id):
        is_enabled = bool(_json_body().get("is_enabled", True))
        result = state.runner.run(
            state.methodology.toggle_training_rule(team_id, rule_id, is_enabled))
        return _action_response(result)

    # ---------- File storage ---------- #

    @app.route("/api/uploads", methods=["POST"])
    def upload_file():
        upload = request.files.get("file")
        owner_id = request.form.get("owner_id", "")
        if upload is None:
            return jsonify({"success": False, "error": "No file provided"}), 400
        result = state.factory.get_storage().upload(upload.stream, owner_id, upload.filename)
        if not result.ok:
            return jsonify({"success": False, "error": result.error}), 400
        return jsonify({"success": True, "path": result.path})

    return app


def run_web_app(host: str = "127.0.0.1", port: int = 7122,
                factory: Optional[ServiceFactory] = None) -> None:
    """
    Run the web application.

    Args:
        host: Host address to bind to (default: localhost only)
        port: Port number to listen on
        factory: Service factory (backend chosen from the environment by default)
    """
    app = create_app(factory)
    try:
        app.run(host=host, port=port, debug=False)
    finally:
        app.extensions["coachdesk"].shutdown()


if __name__ == "__main__":
    logging.basicConfig(level=os.environ.get("COACHDESK_LOG_LEVEL", "INFO"))
    run_web_app()
