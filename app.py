from __future__ import annotations

import os

from flask import Flask, jsonify, request

from config import BaseConfig, config_by_name
from models import db
from services.auth import authenticate, get_current_actor, register_user, token_required
from services.errors import (
    AccountDisabledError,
    AuthenticationError,
    InvalidTokenError,
    NotFoundError,
    OperationNotPermittedError,
    ValidationError,
)
from services.feedback import FeedbackService
from services.files import FileStorage
from services.lending import LendingService
from services.tokens import TokenService, TokenSettings

# business error codes returned alongside the HTTP status
ERROR_CODES = {
    NotFoundError: (404, 0, 'Resource not found'),
    OperationNotPermittedError: (400, 0, 'Operation not permitted'),
    ValidationError: (400, 0, 'Invalid request'),
    InvalidTokenError: (401, 0, 'Invalid or expired token'),
    AuthenticationError: (401, 304, 'Email and / or password is incorrect'),
    AccountDisabledError: (403, 303, 'User account is disabled'),
}


def _load_config(app: Flask, config_name: str | None, test_config: dict | None) -> None:
    resolved_name = config_name or os.environ.get('FLASK_CONFIG', 'development')
    config_cls = config_by_name.get(resolved_name, BaseConfig)
    app.config.from_object(config_cls)
    if test_config:
        app.config.update(test_config)


def _page_args(app: Flask):
    try:
        page = int(request.args.get('page', 1))
        size = int(request.args.get('size', app.config['DEFAULT_PAGE_SIZE']))
    except (TypeError, ValueError):
        raise ValidationError('page and size must be integers') from None
    return max(page, 1), max(size, 1)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('invalid payload')
    return data


def create_app(config_name: str | None = None, test_config: dict | None = None):
    if isinstance(config_name, dict) and test_config is None:
        test_config = config_name
        config_name = None
    app = Flask(__name__)
    _load_config(app, config_name, test_config)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
    db.init_app(app)

    # fails fast when JWT_SECRET_KEY is missing or malformed
    app.extensions['token_service'] = TokenService(TokenSettings.from_mapping(app.config))
    lending_service = LendingService(
        files=FileStorage(app.config['UPLOAD_FOLDER'], app.config['ALLOWED_EXTENSIONS'])
    )
    feedback_service = FeedbackService()

    def render_error(exc):
        status, code, description = ERROR_CODES[type(exc)]
        body = {
            'business_error_code': code,
            'business_error_description': description,
            'error': str(exc),
        }
        reason = getattr(exc, 'reason', None)
        if reason is not None:
            body['reason'] = reason.value
        return jsonify(body), status

    for error_cls in ERROR_CODES:
        app.register_error_handler(error_cls, render_error)

    @app.after_request
    def set_security_headers(response):
        response.headers.setdefault('X-Frame-Options', 'DENY')
        response.headers.setdefault('X-Content-Type-Options', 'nosniff')
        response.headers.setdefault('Referrer-Policy', 'no-referrer')
        return response

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    @app.route('/auth/register', methods=['POST'])
    def register():
        user = register_user(_json_body())
        return jsonify(user.to_dict()), 201

    @app.route('/auth/authenticate', methods=['POST'])
    def login():
        data = _json_body()
        token = authenticate(data.get('email'), data.get('password'))
        return jsonify({'token': token})

    @app.route('/books', methods=['POST'])
    @token_required
    def save_book():
        book_id = lending_service.save_book(_json_body(), get_current_actor()).unwrap()
        return jsonify({'id': book_id}), 201

    @app.route('/books/<int:book_id>', methods=['GET'])
    @token_required
    def find_book(book_id: int):
        book = lending_service.find_book(book_id).unwrap()
        return jsonify(book.to_dict())

    @app.route('/books', methods=['GET'])
    @token_required
    def find_all_books():
        page, size = _page_args(app)
        return jsonify(lending_service.find_displayable_books(get_current_actor(), page, size).to_dict())

    @app.route('/books/owner', methods=['GET'])
    @token_required
    def find_books_by_owner():
        page, size = _page_args(app)
        return jsonify(lending_service.find_books_by_owner(get_current_actor(), page, size).to_dict())

    @app.route('/books/borrowed', methods=['GET'])
    @token_required
    def find_borrowed_books():
        page, size = _page_args(app)
        return jsonify(lending_service.find_borrowed_books(get_current_actor(), page, size).to_dict())

    @app.route('/books/returned', methods=['GET'])
    @token_required
    def find_returned_books():
        page, size = _page_args(app)
        return jsonify(lending_service.find_returned_books(get_current_actor(), page, size).to_dict())

    @app.route('/books/shareable/<int:book_id>', methods=['PATCH'])
    @token_required
    def toggle_shareable(book_id: int):
        return jsonify({'id': lending_service.toggle_shareable(book_id, get_current_actor()).unwrap()})

    @app.route('/books/archived/<int:book_id>', methods=['PATCH'])
    @token_required
    def toggle_archived(book_id: int):
        return jsonify({'id': lending_service.toggle_archived(book_id, get_current_actor()).unwrap()})

    @app.route('/books/borrow/<int:book_id>', methods=['POST'])
    @token_required
    def borrow_book(book_id: int):
        return jsonify({'id': lending_service.borrow(book_id, get_current_actor()).unwrap()})

    @app.route('/books/borrow/return/<int:book_id>', methods=['PATCH'])
    @token_required
    def return_book(book_id: int):
        return jsonify({'id': lending_service.return_book(book_id, get_current_actor()).unwrap()})

    @app.route('/books/borrow/return/approve/<int:book_id>', methods=['PATCH'])
    @token_required
    def approve_return(book_id: int):
        return jsonify({'id': lending_service.approve_return(book_id, get_current_actor()).unwrap()})

    @app.route('/books/cover/<int:book_id>', methods=['POST'])
    @token_required
    def upload_cover(book_id: int):
        file = request.files.get('file')
        if not file or not file.filename:
            raise ValidationError('file is required')
        return jsonify({'id': lending_service.upload_cover(book_id, file, get_current_actor()).unwrap()}), 202

    @app.route('/feedbacks', methods=['POST'])
    @token_required
    def save_feedback():
        feedback_id = feedback_service.submit_request(_json_body(), get_current_actor()).unwrap()
        return jsonify({'id': feedback_id}), 201

    @app.route('/feedbacks/book/<int:book_id>', methods=['GET'])
    @token_required
    def find_feedbacks_by_book(book_id: int):
        page, size = _page_args(app)
        return jsonify(feedback_service.find_by_book(book_id, get_current_actor(), page, size).to_dict())

    return app


if __name__ == '__main__':
    application = create_app()
    with application.app_context():
        db.create_all()
    application.run(debug=True)
