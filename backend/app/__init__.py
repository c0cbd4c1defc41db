import logging

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from config import config

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()

logger = logging.getLogger(__name__)


def configure_logging(level_name: str) -> None:
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    logging.getLogger('app').setLevel(level)


def create_app(config_name='development', similarity_finder=None):
    """Application factory pattern"""
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config[config_name])
    configure_logging(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    CORS(app)

    # Import models
    from app.models import CompetitionEventScore, CriteriaMapping

    # Similarity lookups live in the database unless a finder is injected
    from app.services.criteria_suggestion_service import DatabaseSimilarityFinder
    app.extensions['criteria_similarity_finder'] = similarity_finder or DatabaseSimilarityFinder()

    # Register blueprints
    from app.routes.reports import reports_bp
    app.register_blueprint(reports_bp, url_prefix='/api/competition-reports')

    # Health check endpoint
    @app.route('/api/health')
    def health_check():
        return {'status': 'healthy', 'message': 'Competition Reports API is running'}

    logger.debug("Application created with config '%s'", config_name)
    return app
