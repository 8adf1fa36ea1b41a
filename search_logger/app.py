"""Flask request handler — CORS and method policy around the Dispatcher."""

import logging

from flask import Flask, jsonify, request

from search_logger.config import AppConfig, load_config
from search_logger.dispatcher import Dispatcher, INVALID_INPUT_MESSAGE, normalize_input
from search_logger.enrichment import DictionaryClient
from search_logger.models import RequestContext
from search_logger.sinks import build_sinks

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# OPTIONS is listed explicitly so Flask routes preflights to the view
ROUTE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def build_dispatcher(config: AppConfig, client_factory=None) -> Dispatcher:
    """Wire the sinks and the optional dictionary client from *config*."""
    enrichment = None
    if config.enable_enrichment:
        enrichment = DictionaryClient(
            config.dictionary_base_url,
            timeout=config.request_timeout,
            client_factory=client_factory,
        )
    return Dispatcher(
        build_sinks(config, client_factory),
        enrichment=enrichment,
        local_timezone=config.local_timezone,
    )


def create_app(config=None, dispatcher=None) -> Flask:
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = load_config()
    if dispatcher is None:
        dispatcher = build_dispatcher(config)

    # Store components on app for access in tests and at shutdown
    app.config["components"] = {
        "config": config,
        "dispatcher": dispatcher,
    }

    if config.log_request_details:
        @app.before_request
        def log_request_details():
            logger.info(
                "Request %s %s headers=%s body=%s",
                request.method,
                request.path,
                dict(request.headers),
                request.get_data(as_text=True),
            )

    @app.after_request
    def add_cors_headers(response):
        response.headers.update(CORS_HEADERS)
        return response

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"message": "Method Not Allowed"}), 405

    # --- Routes ---

    @app.route("/", methods=ROUTE_METHODS)
    def log_input():
        if request.method == "OPTIONS":
            return "", 200

        if request.method != "POST":
            return jsonify({"message": "Method Not Allowed"}), 405

        raw_input = extract_input(request.get_json(silent=True))
        if normalize_input(raw_input) is None:
            return jsonify({"message": INVALID_INPUT_MESSAGE}), 400

        try:
            outcome = dispatcher.handle(raw_input, request_context())
        except Exception as exc:
            logger.exception("Error processing request")
            dispatcher.report_failure(exc, raw_input)
            return jsonify({"message": "Internal Server Error", "error": str(exc)}), 500

        return jsonify(outcome.body), outcome.status_code

    @app.route("/health")
    def health():
        return jsonify({
            "status": "ok",
            "enrichment": dispatcher.enrichment_enabled,
            "sinks": [sink.name for sink in dispatcher.sinks if sink.enabled],
            "in_flight": dispatcher.in_flight,
        })

    return app


def extract_input(body):
    """Read the term from ``input``, falling back to ``query``."""
    if not isinstance(body, dict):
        return None
    if "input" in body:
        return body["input"]
    return body.get("query")


def request_context() -> RequestContext:
    forwarded = request.headers.get("X-Forwarded-For")
    return RequestContext(
        client_ip=forwarded or request.remote_addr or "N/A",
        user_agent=request.headers.get("User-Agent") or "unknown",
        origin=request.headers.get("Origin") or "N/A",
    )
