import logging
import os

from config import config
from flask import Flask, jsonify
from flask_cors import CORS
from flask_migrate import Migrate


def create_app(config_name=None):
    """Application factory pattern"""
    if config_name is None:
        config_name = os.getenv("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )

    # Initialize CORS for React frontend
    CORS(
        app,
        resources={r"/api/*": {"origins": app.config["ALLOWED_ORIGINS"]}},
    )

    # Initialize SQLAlchemy
    from models import db

    db.init_app(app)

    # Initialize Flask-Migrate
    migrate = Migrate(app, db)

    # Import all models to ensure they are registered with SQLAlchemy
    from models.feedback import Feedback
    from models.solution import Solution

    # Register API blueprints
    from routes.api import bp as api_bp

    app.register_blueprint(api_bp)

    # Home route
    @app.route("/")
    def home():
        return jsonify({"message": "Welcome to EyüpAI!", "version": "1.0.0"})

    # Health check route
    @app.route("/health")
    def health_check():
        try:
            db.session.execute(db.text("SELECT 1"))
            return jsonify({"status": "healthy", "database": "connected"}), 200
        except Exception as e:
            app.logger.error(f"Health check failed: {e}")
            return jsonify({"status": "unhealthy", "error": str(e)}), 500

    @app.errorhandler(413)
    def file_too_large(error):
        return jsonify({"success": False, "error": "Dosya çok büyük"}), 413

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True, port=5001)
