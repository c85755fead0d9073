from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv
import os
from pathlib import Path

# Load environment variables BEFORE importing routes
backend_dir = Path(__file__).parent
env_path = backend_dir / '.env'
# Only load .env file if it exists (for local development)
if env_path.exists():
    load_dotenv(dotenv_path=env_path)
    print(f"Loaded environment from {env_path}")

# Also try to load from root directory if not found in backend
root_env_path = backend_dir.parent / '.env'
if root_env_path.exists():
    load_dotenv(dotenv_path=root_env_path)
    print(f"Loaded environment from {root_env_path}")

if not env_path.exists() and not root_env_path.exists():
    # In production, environment variables are set directly
    load_dotenv()

from api.routes import create_api_blueprint
from core import config
from core.container import build_default_services


def create_app(services=None):
    """
    Build the Flask application.

    Without ``services`` the Firestore-backed services are wired and their
    background workers started (``gunicorn 'app:create_app()'``).
    """
    app = Flask(__name__)

    CORS(app, origins=config.cors_origins())

    if services is None:
        services = build_default_services()
        services.start()
    app.extensions['studio'] = services

    app.register_blueprint(create_api_blueprint(services), url_prefix='/api')

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return {
            'status': 'ok',
            'message': 'Backend is running',
            'pendingStatsTasks': services.task_queue.pending_count(),
        }, 200

    @app.route('/', methods=['GET'])
    def root():
        """Root endpoint"""
        return {'status': 'ok', 'message': 'Studio Attendance Stats API'}, 200

    return app


if __name__ == '__main__':
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_DEBUG', 'False').lower() == 'true'
    create_app().run(host='0.0.0.0', port=port, debug=debug, use_reloader=False)
