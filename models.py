import datetime
from datetime import timezone
from flask_sqlalchemy import SQLAlchemy

# SQLAlchemy instance (initialized by app)
db = SQLAlchemy()


def utcnow():
    return datetime.datetime.now(timezone.utc)


class User(db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    firstname = db.Column(db.String(80), nullable=False)
    lastname = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    enabled = db.Column(db.Boolean, nullable=False, default=True)
    # comma separated role names, e.g. "USER,ADMIN"
    roles = db.Column(db.String(255), nullable=False, default='USER')
    created_at = db.Column(db.DateTime, default=utcnow)

    @property
    def full_name(self):
        return f'{self.firstname} {self.lastname}'

    @property
    def role_names(self):
        return frozenset(r.strip() for r in (self.roles or '').split(',') if r.strip())

    def to_dict(self):
        return {
            'id': self.id,
            'firstname': self.firstname,
            'lastname': self.lastname,
            'email': self.email,
            'roles': sorted(self.role_names),
        }


class Book(db.Model):
    __tablename__ = 'book'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    author_name = db.Column(db.String(200), nullable=False)
    isbn = db.Column(db.String(32), nullable=True)
    synopsis = db.Column(db.Text, nullable=True)
    cover = db.Column(db.String(500), nullable=True)
    archived = db.Column(db.Boolean, nullable=False, default=False)
    shareable = db.Column(db.Boolean, nullable=False, default=False)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    owner = db.relationship('User', backref=db.backref('books', lazy=True))

    @property
    def rate(self):
        ratings = [f.rating for f in self.feedbacks]
        if not ratings:
            return 0.0
        return round(sum(ratings) / len(ratings), 1)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'author_name': self.author_name,
            'isbn': self.isbn,
            'synopsis': self.synopsis,
            'owner': self.owner.full_name if self.owner else None,
            'cover': self.cover,
            'rate': self.rate,
            'archived': self.archived,
            'shareable': self.shareable,
        }


class Loan(db.Model):
    """One borrow episode of a book (a.k.a. book transaction history)."""

    __tablename__ = 'loan'
    id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey('book.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    returned = db.Column(db.Boolean, nullable=False, default=False)
    return_approved = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    book = db.relationship('Book', backref=db.backref('loans', lazy=True))
    user = db.relationship('User', backref=db.backref('loans', lazy=True))

    # at most one outstanding loan per (book, borrower)
    __table_args__ = (
        db.Index(
            'uq_loan_outstanding',
            'book_id',
            'user_id',
            unique=True,
            sqlite_where=db.text('returned = 0'),
            postgresql_where=db.text('NOT returned'),
        ),
    )

    def to_dict(self):
        book = self.book
        return {
            'id': self.id,
            'book_id': self.book_id,
            'title': book.title if book else None,
            'author_name': book.author_name if book else None,
            'isbn': book.isbn if book else None,
            'rate': book.rate if book else 0.0,
            'returned': self.returned,
            'return_approved': self.return_approved,
        }


class Feedback(db.Model):
    __tablename__ = 'feedback'
    id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey('book.id'), nullable=False, index=True)
    author_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    rating = db.Column(db.Float, nullable=False)
    comment = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    book = db.relationship('Book', backref=db.backref('feedbacks', lazy=True))

    def to_dict(self, viewer_id=None):
        return {
            'rating': self.rating,
            'comment': self.comment,
            'own_feedback': viewer_id is not None and self.author_id == viewer_id,
        }
