from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from phraseotomy import db

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'service': 'phraseotomy', 'api': '/api/games', 'socket_namespace': '/ws'})


@main.route('/health', methods=['GET', 'OPTIONS'])
def health():
    try:
        db.session.execute(text('SELECT 1'))
    except SQLAlchemyError:
        db.session.rollback()
        return jsonify({'status': 'degraded', 'database': False}), 503
    return jsonify({'status': 'ok', 'database': True})
