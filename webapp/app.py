from __future__ import annotations

import logging
import os
from typing import Dict

from flask import Flask, jsonify, request

from capacity_timeline import engine
from capacity_timeline.errors import UnschedulableFeatureError
from capacity_timeline.io_utils import parse_plan
from capacity_timeline.models import MAX_HORIZON_WEEKS
from capacity_timeline.reports import week_start

logger = logging.getLogger(__name__)


def _resolve_max_horizon() -> int:
    env_value = os.getenv("TIMELINE_MAX_HORIZON")
    if env_value:
        try:
            return max(1, min(int(env_value), MAX_HORIZON_WEEKS))
        except ValueError:
            logger.warning("Ignoring invalid TIMELINE_MAX_HORIZON=%r", env_value)
    return MAX_HORIZON_WEEKS


def create_app() -> Flask:
    app = Flask(__name__)
    app.config["MAX_HORIZON"] = _resolve_max_horizon()

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.post("/api/schedule")
    def schedule_plan():
        """Schedule the plan in the request body and return the timeline."""
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "request body must be a JSON object"}), 400
        strict = data.get("strict", False)
        if not isinstance(strict, bool):
            return jsonify({"error": f"strict must be a boolean, got {strict!r}"}), 400
        try:
            context = parse_plan(data)
            if context.horizon > app.config["MAX_HORIZON"]:
                return jsonify({"error": f"horizon may not exceed {app.config['MAX_HORIZON']} weeks"}), 400
            result = engine.plan(context, strict=strict)
        except UnschedulableFeatureError as exc:
            return jsonify({"error": str(exc), "feature_id": exc.feature_id}), 422
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400

        payload: Dict[str, object] = result.to_dict()
        if context.start_date is not None:
            for item in payload["scheduled"]:
                item["start_date"] = week_start(context.start_date, item["start_week"])
                item["end_date"] = week_start(context.start_date, item["end_week"])
        return jsonify(payload)

    return app


if __name__ == "__main__":
    create_app().run(debug=False)
