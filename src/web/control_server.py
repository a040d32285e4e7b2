import hmac
import logging
import os

from flask import Flask, jsonify, render_template, request

from version import __version__
from src.session.config import DEFAULT_API_KEY, ConfigApplyError
from src.utils.common import validate_hostname, validate_port

log = logging.getLogger("control_server")

_PUBLIC_PATHS = ("/", "/healthz")


def _request_key():
    return request.args.get("key") or request.headers.get("X-API-Key") or ""


def create_app(facade, api_key=DEFAULT_API_KEY):
    """Build the control server around a ControlFacade.

    Routes:
        GET  /          dashboard (public)
        GET  /healthz   liveness (public)
        GET  /status    session status
        POST /apply     update config + restart
        POST /restart   restart with current config
    """
    app = Flask(
        __name__,
        template_folder=os.path.join(os.path.dirname(__file__), 'templates'),
    )
    app.config["API_KEY"] = api_key
    app.extensions["control_facade"] = facade

    @app.before_request
    def check_auth():
        if request.method == "OPTIONS":
            return "", 200
        if request.path in _PUBLIC_PATHS:
            return None
        expected = app.config["API_KEY"].encode()
        if not hmac.compare_digest(_request_key().encode(), expected):
            return jsonify(error="Unauthorized"), 401
        return None

    @app.after_request
    def add_headers(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type, X-API-Key"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; style-src 'self' 'unsafe-inline'; "
            "script-src 'self' 'unsafe-inline'"
        )
        if response.mimetype == "application/json":
            response.headers["Cache-Control"] = "no-store"
        return response

    @app.route('/')
    def home():
        resp = app.make_response(render_template('dashboard.html', version=__version__))
        resp.headers["Cache-Control"] = "public, max-age=3600"
        return resp

    @app.route('/healthz')
    def healthz():
        return jsonify(status="ok", version=__version__)

    @app.route('/status')
    def status():
        return jsonify(facade.get_status())

    @app.route('/apply', methods=['POST'])
    def apply():
        payload = request.get_json(silent=True)
        if payload is None:
            return jsonify(success=False, error="Invalid request"), 400
        try:
            facade.apply(payload)
        except ConfigApplyError as e:
            log.warning("Rejected config update: %s", e)
            return jsonify(success=False, error="Invalid request", detail=str(e)), 400
        return jsonify(success=True, message="Config applied, bot restarting...")

    @app.route('/restart', methods=['POST'])
    def restart():
        facade.restart_bot()
        return jsonify(success=True, message="Bot restarting...")

    @app.errorhandler(404)
    def not_found(_err):
        return jsonify(error="Not found"), 404

    @app.errorhandler(405)
    def not_allowed(_err):
        return jsonify(error="Method not allowed"), 405

    return app


def run_server(app, host='0.0.0.0', port=10000):
    """Validate the bind address, then serve (blocking)."""
    ok, err = validate_hostname(host)
    if not ok:
        log.error("Invalid dashboard host: %s. Falling back to 127.0.0.1", err)
        host = '127.0.0.1'
    ok, err = validate_port(port)
    if not ok:
        log.error("Invalid dashboard port: %s. Falling back to 10000", err)
        port = 10000

    if app.config["API_KEY"] == DEFAULT_API_KEY:
        log.warning("API_KEY is the default '%s'. Set API_KEY before exposing "
                    "the control server.", DEFAULT_API_KEY)
    log.info("Dashboard ready at http://%s:%s", host, port)
    app.run(host=host, port=port, threaded=True, use_reloader=False)
