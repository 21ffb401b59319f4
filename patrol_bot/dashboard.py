"""
dashboard.py - Web dashboard and JSON API for the patrol bot.

Endpoints:
- GET  /api/bot-status     Current status document
- POST /api/set-center     {"x", "y", "z"} numbers
- POST /api/toggle-patrol  Start or stop patrolling
- POST /api/update-server  {"host", "port"} and switch servers
- POST /api/disconnect     Leave the server
- GET  /                   Dashboard page
"""

import logging
from pathlib import Path
from typing import Optional, Any

from flask import Flask, jsonify, request, send_from_directory
from flask_cors import CORS

from .controller import BotController

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "public"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_port(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 65535


def create_app(controller: BotController, static_dir: Optional[str] = None) -> Flask:
    """
    Build the dashboard application around a controller.

    Args:
        controller: Bot controller the API drives
        static_dir: Directory holding index.html and assets

    Returns:
        Configured Flask app
    """
    static_dir = str(static_dir or STATIC_DIR)
    app = Flask(__name__, static_folder=static_dir, static_url_path='')
    CORS(app)

    @app.get('/api/bot-status')
    def bot_status():
        return jsonify(controller.get_status())

    @app.post('/api/set-center')
    def set_center():
        body = request.get_json(silent=True) or {}
        x, y, z = body.get('x'), body.get('y'), body.get('z')
        if not all(_is_number(v) for v in (x, y, z)):
            return jsonify({'error': 'Invalid coordinates'}), 400

        center = controller.set_center(x, y, z)
        return jsonify({'success': True, 'center': center.to_dict()})

    @app.post('/api/toggle-patrol')
    def toggle_patrol():
        patrolling = controller.toggle_patrol()
        return jsonify({'success': True, 'isPatrolling': patrolling})

    @app.post('/api/update-server')
    def update_server():
        body = request.get_json(silent=True) or {}
        host, port = body.get('host'), body.get('port')

        if not isinstance(host, str) or not host.strip():
            return jsonify({'error': 'Invalid host'}), 400
        if not _is_port(port):
            return jsonify({'error': 'Invalid port number'}), 400

        try:
            controller.update_server(host, port)
        except Exception:
            logger.exception("Error updating server config")
            return jsonify({'error': 'Failed to update server configuration'}), 500

        return jsonify({'success': True, 'message': 'Server updated successfully'})

    @app.post('/api/disconnect')
    def disconnect():
        try:
            controller.disconnect()
        except Exception:
            logger.exception("Error disconnecting")
            return jsonify({'error': 'Failed to disconnect'}), 500

        return jsonify({'success': True, 'message': 'Disconnected from server'})

    @app.get('/')
    def index():
        return send_from_directory(static_dir, 'index.html')

    return app
