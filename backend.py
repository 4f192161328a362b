"""
Liveness backend for the voice curfew bot
Serves a plain-text root endpoint and a JSON health report
"""

import logging
from flask import Flask, jsonify, request
from core.shared_state import state

logger = logging.getLogger(__name__)


def create_app(health_checker=None, audit_logger=None):
    """Build the Flask app; components not passed in are read from the shared bot state"""
    app = Flask(__name__)

    @app.route('/', methods=['GET'])
    def index():
        return "Bot is running!"

    @app.route('/api/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        checker = health_checker or state.health_checker
        if checker is None:
            return jsonify({'status': 'ok', 'component': 'curfew', 'message': 'Curfew engine not started'})

        try:
            report = checker.health_check()
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return jsonify({'status': 'error', 'error': str(e)}), 500

        return jsonify(report)

    @app.route('/api/audit', methods=['GET'])
    def get_audit_logs():
        """Recent curfew actions, newest first"""
        logs = audit_logger if audit_logger is not None else state.audit_logger
        if logs is None:
            return jsonify([])

        try:
            limit = int(request.args.get('limit', 50))
        except ValueError:
            return jsonify({'error': 'limit must be an integer'}), 400

        entries = logs.get_audit_logs(
            user_id=request.args.get('user_id'),
            action=request.args.get('action'),
            limit=limit
        )
        return jsonify(entries), 200

    return app


def run_backend(host: str, port: int, health_checker=None):
    """Run the Flask server (blocking)"""
    app = create_app(health_checker)
    logger.info(f"Server is running on port {port}")
    app.run(host=host, port=port, debug=False, use_reloader=False, threaded=True)
