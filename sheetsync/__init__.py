"""
Flask application factory.

Creates the app, wires collaborators onto app.extensions, registers blueprints.
"""
from flask import Flask, jsonify


def create_app(services=None):
    """
    Create and configure the Flask application.

    `services` defaults to build_services(); pass a Services instance to run
    against other collaborators (tests do).
    """
    from sheetsync.config import SECRET_KEY
    from sheetsync.database import import_models
    from sheetsync.extensions import EXTENSION_KEY, build_services
    from sheetsync.logging_config import configure_logging

    app = Flask(__name__)
    configure_logging(app)
    app.secret_key = SECRET_KEY

    import_models()
    app.extensions[EXTENSION_KEY] = services or build_services()

    from sheetsync.routes.connectors import bp as connectors_bp
    from sheetsync.routes.sync import bp as sync_bp
    from sheetsync.routes.health import bp as health_bp

    app.register_blueprint(connectors_bp)
    app.register_blueprint(sync_bp)
    app.register_blueprint(health_bp)

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({'success': False, 'error': 'Endpoint not found'}), 404

    @app.errorhandler(500)
    def internal_error(_error):
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    return app
