"""JSON routes for the status app."""

from flask import Blueprint, current_app, jsonify

api_bp = Blueprint("api", __name__, url_prefix="/api/v1")


@api_bp.route("/status")
def status():
    """Orchestrator summary: install state, pass state, placeholder counts, types."""
    return jsonify(current_app.config["orchestrator"].snapshot())


@api_bp.route("/types")
def types():
    """MIME type support map."""
    return jsonify(current_app.config["orchestrator"].registry.snapshot())
