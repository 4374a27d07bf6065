import pytest
from werkzeug.security import check_password_hash

import create_user
from app import create_app
from models import db, User


def test_create_then_update_user(tmp_path, capsys):
    db_uri = f"sqlite:///{tmp_path / 'users.db'}"

    assert create_user.main(['--email', 'Admin@Example.com', '--password', 'secret123', '--role', 'admin', '--db-uri', db_uri]) == 0
    assert 'Created new user: admin@example.com (ADMIN)' in capsys.readouterr().out

    assert create_user.main(['--email', 'admin@example.com', '--password', 'changed456', '--token', '--db-uri', db_uri]) == 0
    out = capsys.readouterr().out.strip().splitlines()
    assert "Updated existing user 'admin@example.com' (USER)" in out[0]
    token = out[-1]

    app = create_app({'TESTING': True, 'SQLALCHEMY_DATABASE_URI': db_uri})
    with app.app_context():
        user = User.query.filter_by(email='admin@example.com').one()
        assert check_password_hash(user.password_hash, 'changed456')
        assert user.role_names == frozenset({'USER'})
        tokens = app.extensions['token_service']
        assert tokens.is_valid(token, str(user.id))
        assert tokens.claims(token)['fullName'] == 'Library User'


def test_nothing_reported_when_commit_fails(tmp_path, capsys, monkeypatch):
    def failing_commit():
        raise RuntimeError('disk full')

    monkeypatch.setattr(db.session, 'commit', failing_commit)
    with pytest.raises(RuntimeError):
        create_user.main(['--email', 'a@example.com', '--password', 'secret123', '--db-uri', f"sqlite:///{tmp_path / 'u.db'}"])
    assert 'Created' not in capsys.readouterr().out
