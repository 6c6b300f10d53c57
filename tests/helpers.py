"""
Record builders shared by the test modules.
"""

from datetime import datetime, timedelta

from pixframe.models import Customer, Project


def make_customer(number: int = 0, **overrides) -> Customer:
    values = dict(
        customer_number=number,
        first_name='Ana',
        last_name='Lima',
        email='ana@example.com',
        phone='0171 123',
        street='Hauptstr.',
        house_number='5',
        zip_code='50667',
        city='Köln',
    )
    values.update(overrides)
    return Customer(**values)


def make_project(project_id: int = 0, customer_number: int = 1000, **overrides) -> Project:
    values = dict(
        project_id=project_id,
        customer_number=customer_number,
        project_name='Hochzeit Lima',
        category='Hochzeit',
        created_date=datetime(2025, 1, 10, 9, 30, 0),
        booking=datetime(2025, 6, 14, 0, 0, 0),
        location='Schloss Benrath',
        booking_time=timedelta(hours=14, minutes=30),
        photography=True,
    )
    values.update(overrides)
    return Project(**values)
