"""
Shared pytest fixtures for LoyalLink.

Each test gets a fresh app with an in-memory SQLite database. Data fixtures
commit their rows and hand back detached instances, so tests read ids from
them and re-query inside their own app context.
"""
import pytest

from loyallink import create_app
from loyallink.extensions import db
from loyallink.models import Business, Customer


@pytest.fixture
def app():
    """Application configured for testing, tables created per test."""
    app = create_app('testing')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _detach(obj):
    db.session.refresh(obj)
    db.session.expunge(obj)
    return obj


@pytest.fixture
def sample_business(app):
    """Business with a 5-visit goal and email notifications on."""
    with app.app_context():
        business = Business(
            name='Test Coffee',
            email='owner@testcoffee.com',
            visit_goal=5,
            reward_title='Free Coffee',
            reward_description='Any size, any drink',
            notification_email=True,
            notification_whatsapp=False,
            inactive_days_threshold=30,
        )
        db.session.add(business)
        db.session.commit()
        return _detach(business)


@pytest.fixture
def other_business(app):
    """Second business, for scoping tests."""
    with app.app_context():
        business = Business(name='Other Bakery', email='owner@otherbakery.com', visit_goal=3)
        db.session.add(business)
        db.session.commit()
        return _detach(business)


@pytest.fixture
def sample_customer(app, sample_business):
    """Customer of sample_business with no visits yet."""
    with app.app_context():
        customer = Customer(
            business_id=sample_business.id,
            name='Test Customer',
            phone='5551234567',
            email='customer@example.com',
            visits=0,
            points=0,
            qr_data='loyallink-5551234567',
        )
        db.session.add(customer)
        db.session.commit()
        return _detach(customer)


@pytest.fixture
def make_customer(app, sample_business):
    """Factory for extra customers of sample_business."""
    counter = {'n': 0}

    def _make(**overrides):
        counter['n'] += 1
        values = {
            'business_id': sample_business.id,
            'name': f'Customer {counter["n"]}',
            'phone': f'555000{counter["n"]:04d}',
            'email': f'customer{counter["n"]}@example.com',
            'visits': 0,
            'points': 0,
        }
        values.update(overrides)
        with app.app_context():
            customer = Customer(**values)
            db.session.add(customer)
            db.session.commit()
            return _detach(customer)

    return _make


@pytest.fixture
def headers(sample_business):
    """Request headers scoping API calls to sample_business."""
    return {
        'X-Business-ID': str(sample_business.id),
        'Content-Type': 'application/json'
    }
