import logging

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from config import config

db = SQLAlchemy()

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Every error leaves the API as {"error": {...}} JSON"""
    from karaoke.exceptions import BaseAppException, InternalError

    @app.errorhandler(BaseAppException)
    def handle_app_exception(exc):
        if exc.status_code >= 500:
            logger.error('%s', exc)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc):
        db.session.rollback()
        logger.exception('Database error')
        error = InternalError('Database error')
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc):
        return jsonify({
            'error': {
                'message': exc.description,
                'code': exc.name.upper().replace(' ', '_'),
                'details': {},
                'type': exc.__class__.__name__
            }
        }), exc.code


def create_app(config_name='default'):
    """Flask application factory"""
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    db.init_app(app)
    register_error_handlers(app)

    from karaoke.services.printing import PrintQueue
    app.extensions['print_queue'] = PrintQueue.from_config(app.config)

    with app.app_context():
        from karaoke.modules import (billing, fnb_orders, gifts, menu, prices, promotions,
                                     revenue, rooms, schedules)

        app.register_blueprint(rooms.bp)
        app.register_blueprint(schedules.bp)
        app.register_blueprint(prices.bp)
        app.register_blueprint(menu.bp)
        app.register_blueprint(fnb_orders.bp)
        app.register_blueprint(gifts.bp)
        app.register_blueprint(promotions.bp)
        app.register_blueprint(billing.bp)
        app.register_blueprint(revenue.bp)

        db.create_all()

    return app
