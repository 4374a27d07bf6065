import pytest
from sqlalchemy.exc import IntegrityError

from models import db, Book, Loan
from services.errors import NotFoundError, Reason, ValidationError
from services.guards import Actor
from services.lending import LendingService, LoanState, loan_state


@pytest.fixture
def service(app):
    return LendingService()


def test_scenario_borrow_return_approve(service, make_user, make_book):
    owner = make_user('ten@example.com')
    reader = make_user('twenty@example.com')
    book = make_book(owner)
    owner_actor, reader_actor = Actor.from_user(owner), Actor.from_user(reader)

    first = service.borrow(book.id, reader_actor)
    assert first.ok
    loan = db.session.get(Loan, first.value)
    assert (loan.book_id, loan.user_id, loan.returned) == (book.id, reader.id, False)
    assert loan_state(loan) is LoanState.BORROWED

    again = service.borrow(book.id, reader_actor)
    assert again.reason is Reason.ALREADY_BORROWED

    returned = service.return_book(book.id, reader_actor)
    assert returned.value == loan.id
    assert db.session.get(Loan, loan.id).returned is True
    assert loan_state(db.session.get(Loan, loan.id)) is LoanState.RETURN_REQUESTED

    approved = service.approve_return(book.id, owner_actor)
    assert approved.value == loan.id
    loan = db.session.get(Loan, loan.id)
    assert loan.return_approved is True
    assert loan_state(loan) is LoanState.RETURN_APPROVED

    assert service.approve_return(book.id, owner_actor).reason is Reason.NOT_RETURNED_YET


def test_owner_cannot_borrow_own_book(service, owner, make_book):
    book = make_book(owner)
    outcome = service.borrow(book.id, Actor.from_user(owner))
    assert outcome.reason is Reason.OWN_BOOK
    assert Loan.query.count() == 0


@pytest.mark.parametrize('flags', [{'shareable': False}, {'archived': True}])
def test_hidden_book_cannot_be_borrowed(service, owner, borrower, make_book, flags):
    book = make_book(owner, **flags)
    for user in (owner, borrower):
        assert service.borrow(book.id, Actor.from_user(user)).reason is Reason.ARCHIVED_OR_NOT_SHAREABLE


def test_missing_book_is_not_found(service, borrower):
    outcome = service.borrow(999, Actor.from_user(borrower))
    assert isinstance(outcome.error, NotFoundError)
    with pytest.raises(NotFoundError):
        outcome.unwrap()


def test_borrow_again_after_return(service, owner, borrower, make_book):
    book = make_book(owner)
    actor = Actor.from_user(borrower)
    first = service.borrow(book.id, actor).unwrap()
    service.return_book(book.id, actor).unwrap()
    second = service.borrow(book.id, actor).unwrap()
    assert second != first
    assert Loan.query.filter_by(book_id=book.id, returned=False).count() == 1


def test_return_without_loan(service, owner, borrower, make_book):
    book = make_book(owner)
    assert service.return_book(book.id, Actor.from_user(borrower)).reason is Reason.NOT_BORROWED


def test_owner_cannot_return_own_book(service, owner, make_book):
    book = make_book(owner)
    assert service.return_book(book.id, Actor.from_user(owner)).reason is Reason.OWN_BOOK


def test_return_blocked_once_book_is_archived(service, owner, borrower, make_book):
    book = make_book(owner)
    actor = Actor.from_user(borrower)
    service.borrow(book.id, actor).unwrap()
    service.toggle_archived(book.id, Actor.from_user(owner)).unwrap()
    assert service.return_book(book.id, actor).reason is Reason.ARCHIVED_OR_NOT_SHAREABLE


def test_approve_before_return(service, owner, borrower, make_book):
    book = make_book(owner)
    service.borrow(book.id, Actor.from_user(borrower)).unwrap()
    assert service.approve_return(book.id, Actor.from_user(owner)).reason is Reason.NOT_RETURNED_YET


def test_only_owner_approves_return(service, owner, borrower, make_book):
    book = make_book(owner)
    actor = Actor.from_user(borrower)
    service.borrow(book.id, actor).unwrap()
    service.return_book(book.id, actor).unwrap()
    assert service.approve_return(book.id, actor).reason is Reason.NOT_OWNER


def test_toggles_are_owner_only(service, owner, borrower, make_book):
    book = make_book(owner, shareable=False)
    assert service.toggle_shareable(book.id, Actor.from_user(borrower)).reason is Reason.NOT_OWNER
    assert service.toggle_archived(book.id, Actor.from_user(borrower)).reason is Reason.NOT_OWNER

    assert service.toggle_shareable(book.id, Actor.from_user(owner)).value == book.id
    assert db.session.get(Book, book.id).shareable is True
    service.toggle_archived(book.id, Actor.from_user(owner)).unwrap()
    assert db.session.get(Book, book.id).archived is True
    assert isinstance(service.toggle_archived(404, Actor.from_user(owner)).error, NotFoundError)


def test_outstanding_loan_index_rejects_duplicates(app, owner, borrower, make_book):
    book = make_book(owner)
    db.session.add(Loan(book_id=book.id, user_id=borrower.id))
    db.session.commit()
    db.session.add(Loan(book_id=book.id, user_id=borrower.id))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


def test_save_book_and_listings(service, owner, borrower, make_book):
    owner_actor, reader_actor = Actor.from_user(owner), Actor.from_user(borrower)
    book_id = service.save_book(
        {'title': 'Emma', 'author_name': 'Jane Austen', 'shareable': True}, owner_actor
    ).unwrap()
    make_book(owner, title='Hidden', shareable=False)
    make_book(borrower, title='Mine')

    displayable = service.find_displayable_books(reader_actor, 1, 10)
    assert [b['title'] for b in displayable.content] == ['Emma']
    assert displayable.total_elements == 1
    assert displayable.first and displayable.last

    own = service.find_books_by_owner(owner_actor, 1, 10)
    assert {b['title'] for b in own.content} == {'Emma', 'Hidden'}

    service.borrow(book_id, reader_actor).unwrap()
    borrowed = service.find_borrowed_books(reader_actor, 1, 10)
    assert borrowed.content[0]['title'] == 'Emma'
    assert borrowed.content[0]['returned'] is False
    assert service.find_returned_books(owner_actor, 1, 10).total_elements == 0

    service.return_book(book_id, reader_actor).unwrap()
    returned = service.find_returned_books(owner_actor, 1, 10)
    assert returned.content[0]['book_id'] == book_id


def test_save_book_requires_title(service, owner):
    with pytest.raises(ValidationError):
        service.save_book({'author_name': 'Anon'}, Actor.from_user(owner))


@pytest.mark.parametrize('flags', [{'shareable': False}, {'archived': True}])
def test_hidden_book_cannot_be_returned(service, owner, borrower, make_book, flags):
    book = make_book(owner, **flags)
    for user in (owner, borrower):
        assert service.return_book(book.id, Actor.from_user(user)).reason is Reason.ARCHIVED_OR_NOT_SHAREABLE


def test_racing_borrow_is_reported_as_already_borrowed(service, owner, borrower, make_book, monkeypatch, caplog):
    book = make_book(owner)
    actor = Actor.from_user(borrower)
    # both borrows pass the existence check, as two concurrent requests would
    monkeypatch.setattr(service.loans, 'exists_outstanding_loan', lambda book_id, borrower_id: False)

    assert service.borrow(book.id, actor).ok
    outcome = service.borrow(book.id, actor)

    assert outcome.reason is Reason.ALREADY_BORROWED
    assert Loan.query.count() == 1
    assert 'denied: already-borrowed' in caplog.text
