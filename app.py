import logging
import os
from dotenv import load_dotenv
load_dotenv()
from flask import Flask, jsonify
from flask_cors import CORS
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException
from config import config_dict
from classes.errors import QuizPortalError
from models import db
from routes.authentication import auth_bp
from routes.tests import test_bp
from routes.questions import question_bp
from routes.attempts import attempt_bp
from routes.generator import generator_bp
from utils.quiz_store import build_quiz_store

logger = logging.getLogger(__name__)

migrate = Migrate()


def register_error_handlers(app):
    @app.errorhandler(QuizPortalError)
    def handle_quiz_portal_error(error):
        if error.status_code >= 500:
            logger.warning("%s: %s", type(error).__name__, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        if error.code == 404:
            return jsonify({"error": "Route not found"}), 404
        return jsonify({"error": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception("Unhandled error")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


def create_app(env=None):
    env = (env or os.environ.get("FLASK_ENV", "production")).lower()
    app = Flask(__name__)
    app.config.from_object(config_dict.get(env, config_dict["production"]))

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Environment: %s", env)

    CORS(app, resources={r"/api/*": {"origins": app.config["FRONTEND_URLS"]}}, supports_credentials=True)

    db.init_app(app)
    migrate.init_app(app, db)
    app.extensions["quiz_store"] = build_quiz_store(app.config)

    @app.route('/health')
    def health():
        return jsonify({"status": "OK", "message": "Quiz Portal API is running"})

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(test_bp, url_prefix='/api/tests')
    app.register_blueprint(question_bp, url_prefix='/api/questions')
    app.register_blueprint(attempt_bp, url_prefix='/api/attempts')
    app.register_blueprint(generator_bp, url_prefix='/api/quizgen')

    register_error_handlers(app)

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=app.config['DEBUG'])
