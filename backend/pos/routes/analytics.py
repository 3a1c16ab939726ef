# Overview: Flask API routes for analytics; parses input and returns JSON responses.

"""
Analytics Routes

Sales summary over the caller's transaction archive.
"""

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, current_scope
from ..services import reporting_service
from ..services.reporting_service import ReportError


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("/summary")
@require_auth
def summary_route():
    top = request.args.get("top", default=10, type=int)
    try:
        result = reporting_service.analytics_summary(
            current_scope(),
            start=request.args.get("start"),
            end=request.args.get("end"),
            top_limit=max(1, min(top, 50)),
        )
        return jsonify(result)
    except ReportError as e:
        return jsonify(e.to_dict()), 400
