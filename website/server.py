"""Flask server for the medication tracker.

Serves:
  - Tracker JSON API   (/api/...)
  - Relay WebSocket    (WS  /ws)
  - Relay status       (GET /status)
  - Sensor event log   (GET /logs)

Run through ``python main.py``; the app is built by ``create_app`` with an
already wired session and relay hub.
"""

from flask import Flask, jsonify, request
from flask_sock import Sock
from simple_websocket import ConnectionClosed

from config import ReminderConfig, get_logger
from core.models import DoseSource, Settings
from core.session import AckStatus

logger = get_logger("server")


def settings_from_payload(data: dict, config: ReminderConfig) -> Settings:
    """Accept seconds, minutes or the "until-action" choice."""
    if "minReminderDurationSeconds" in data:
        seconds = int(data["minReminderDurationSeconds"])
    elif "reminderDuration" in data:
        choice = data["reminderDuration"]
        if choice == "until-action":
            seconds = config.until_action_seconds
        else:
            seconds = int(choice) * 60
    else:
        raise ValueError("expected minReminderDurationSeconds or reminderDuration")
    if seconds <= 0:
        raise ValueError("reminder duration must be positive")
    return Settings(min_reminder_duration_seconds=seconds)


def _ack_response(result):
    status = 404 if result.status == AckStatus.NO_TARGET else 200
    return jsonify(result.to_dict()), status


def create_app(session, hub, config: ReminderConfig = None) -> Flask:
    config = config or session.config
    app = Flask(__name__)
    sock = Sock(app)

    # ── Relay ─────────────────────────────────────────────────
    @sock.route("/ws")
    def relay_socket(ws):
        hub.connect(ws, request.remote_addr or "")
        try:
            while True:
                raw = ws.receive()
                if raw is None:
                    continue
                hub.handle_client_message(ws, raw)
        except ConnectionClosed:
            logger.debug("Relay client closed the connection")
        finally:
            hub.disconnect(ws)

    @app.route("/status")
    def relay_status():
        return jsonify(hub.status())

    @app.route("/logs")
    def relay_logs():
        return jsonify(logs=hub.read_logs())

    @app.route("/health")
    def health():
        return jsonify(status="ok")

    # ── Medications ───────────────────────────────────────────
    @app.route("/api/medications", methods=["GET"])
    def list_medications():
        return jsonify([m.to_dict() for m in session.list_medications()])

    @app.route("/api/medications", methods=["POST"])
    def add_medication():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify(error="expected a JSON object"), 400
        try:
            med = session.add_medication(data)
        except (KeyError, TypeError, ValueError) as e:
            return jsonify(error=f"invalid medication: {e}"), 400
        return jsonify(med.to_dict()), 201

    @app.route("/api/medications/<medication_id>", methods=["PUT"])
    def update_medication(medication_id):
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify(error="expected a JSON object"), 400
        try:
            med = session.update_medication(medication_id, data)
        except (KeyError, TypeError, ValueError) as e:
            return jsonify(error=f"invalid medication: {e}"), 400
        if med is None:
            return jsonify(error="medication not found"), 404
        return jsonify(med.to_dict())

    @app.route("/api/medications/<medication_id>", methods=["DELETE"])
    def delete_medication(medication_id):
        if not session.delete_medication(medication_id):
            return jsonify(error="medication not found"), 404
        return jsonify(ok=True)

    # ── Reminders ─────────────────────────────────────────────
    @app.route("/api/next")
    def next_medication():
        return jsonify(session.next_view())

    @app.route("/api/alert")
    def current_alert():
        return jsonify(session.alert_view())

    @app.route("/api/take", methods=["POST"])
    def take():
        data = request.get_json(silent=True) or {}
        try:
            source = DoseSource(data.get("source", DoseSource.MANUAL.value))
        except ValueError:
            return jsonify(error=f"unknown source {data.get('source')!r}"), 400
        result = session.record_taken(data.get("medicationId") or "next", source)
        return _ack_response(result)

    @app.route("/api/confirm", methods=["POST"])
    def confirm():
        data = request.get_json(silent=True) or {}
        result = session.confirm_pending(bool(data.get("accept")))
        return _ack_response(result)

    @app.route("/api/snooze", methods=["POST"])
    def snooze():
        return jsonify(session.snooze())

    @app.route("/api/dismiss", methods=["POST"])
    def dismiss():
        result = session.request_dismiss()
        body = {
            "accepted": result.accepted,
            "remainingSeconds": result.remaining_seconds,
            "message": result.message,
        }
        return jsonify(body), (200 if result.accepted else 409)

    @app.route("/api/stats")
    def stats():
        return jsonify(session.stats().to_dict())

    # ── Settings ──────────────────────────────────────────────
    @app.route("/api/settings", methods=["GET"])
    def get_settings():
        return jsonify(dict(session.settings.to_dict(), minDismissSeconds=session.gate.min_dismiss_seconds))

    @app.route("/api/settings", methods=["POST"])
    def update_settings():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify(error="expected a JSON object"), 400
        try:
            settings = settings_from_payload(data, config)
        except (TypeError, ValueError) as e:
            return jsonify(error=str(e)), 400
        session.update_settings(settings)
        return jsonify(dict(settings.to_dict(), minDismissSeconds=session.gate.min_dismiss_seconds))

    return app
