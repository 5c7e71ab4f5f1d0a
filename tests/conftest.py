import itertools
from datetime import date, timedelta

import pytest
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from sigb import create_app
from sigb.config import Config
from sigb.db_objects import ensure_db_objects
from sigb.extensions import db
from sigb.models.academic import Memoir, StageReport, Thesis
from sigb.models.book import Book
from sigb.models.loan import Loan
from sigb.models.penalty import Penalty
from sigb.models.penalty_setting import PenaltySetting
from sigb.models.user import User

TODAY = date(2025, 1, 10)


class TestConfig(Config):
    __test__ = False

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    ENSURE_DB_OBJECTS = False
    SCHEDULER_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    JWT_SECRET_KEY = "sigb-test-secret-key-long-enough-for-hs256"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        ensure_db_objects(app)
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(role="user", full_name=None, email=None):
        n = next(counter)
        user = User(
            full_name=full_name or f"Reader {n}",
            email=email or f"reader{n}@udm.local",
            barcode=f"UDM{n:05d}",
            password_hash=generate_password_hash("secret"),
            role=role,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_book(app):
    def _make(title="Les Misérables", author="Victor Hugo", copies=2):
        book = Book(title=title, main_author=author, total_copies=copies, available_copies=copies)
        db.session.add(book)
        db.session.commit()
        return book

    return _make


@pytest.fixture
def make_academic(app):
    models = {"thesis": Thesis, "memoir": Memoir}

    def _make(document_type, title, author):
        if document_type == "internship_report":
            doc = StageReport(title=title, student_name=author)
        else:
            doc = models[document_type](title=title, main_author=author)
        db.session.add(doc)
        db.session.commit()
        return doc

    return _make


@pytest.fixture
def make_loan(app, make_book):
    def _make(user, due_date, document_type="book", document=None, status="active",
              fine_amount=0, return_date=None):
        loan = Loan(
            user_id=user.id,
            document_type=document_type,
            loan_date=due_date - timedelta(days=14),
            due_date=due_date,
            return_date=return_date,
            status=status,
            fine_amount=fine_amount,
            fine_paid=False,
        )
        if document_type == "book":
            loan.book_id = (document or make_book()).id
        elif document is not None:
            loan.academic_document_id = document.id
        db.session.add(loan)
        db.session.commit()
        return loan

    return _make


@pytest.fixture
def make_setting(app):
    def _make(document_type="book", daily_rate=100, max_penalty=5000, grace_period_days=1, is_active=True):
        setting = PenaltySetting(
            document_type=document_type,
            daily_rate=daily_rate,
            max_penalty=max_penalty,
            grace_period_days=grace_period_days,
            is_active=is_active,
        )
        db.session.add(setting)
        db.session.commit()
        return setting

    return _make


@pytest.fixture
def make_penalty(app):
    def _make(user, amount, status="unpaid", loan=None, penalty_type="other", description=None):
        penalty = Penalty(
            user_id=user.id,
            loan_id=loan.id if loan else None,
            penalty_type=penalty_type,
            amount_fcfa=amount,
            penalty_date=TODAY,
            due_date=TODAY + timedelta(days=30),
            status=status,
            description=description or f"Penalty of {amount} FCFA",
        )
        db.session.add(penalty)
        db.session.commit()
        return penalty

    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(
            identity=str(user.id),
            additional_claims={"role": user.role, "full_name": user.full_name},
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def librarian(make_user):
    return make_user(role="librarian", full_name="Awa Librarian", email="librarian@udm.local")


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", full_name="Admin UdM", email="admin@udm.local")
