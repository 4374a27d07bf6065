import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from models import db, Book, User


@pytest.fixture
def app(tmp_path):
    app = create_app('testing', {
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(email, password='password123', roles='USER', **kwargs):
        user = User(
            firstname=kwargs.pop('firstname', 'Test'),
            lastname=kwargs.pop('lastname', 'User'),
            email=email,
            password_hash=generate_password_hash(password),
            roles=roles,
            **kwargs,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_book(app):
    def _make_book(owner, title='Dune', shareable=True, archived=False, **kwargs):
        book = Book(
            title=title,
            author_name=kwargs.pop('author_name', 'Frank Herbert'),
            owner_id=owner.id,
            shareable=shareable,
            archived=archived,
            **kwargs,
        )
        db.session.add(book)
        db.session.commit()
        return book

    return _make_book


@pytest.fixture
def owner(make_user):
    return make_user('owner@example.com')


@pytest.fixture
def borrower(make_user):
    return make_user('borrower@example.com')
