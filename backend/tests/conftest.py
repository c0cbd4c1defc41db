from datetime import date

import pytest
from flask_jwt_extended import create_access_token

from app import create_app, db
from app.models import CompetitionEventScore, CriteriaMapping
from helpers import FakeSimilarityFinder


@pytest.fixture
def similarity_finder():
    return FakeSimilarityFinder()


@pytest.fixture
def app(similarity_finder):
    app = create_app('testing', similarity_finder=similarity_finder)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    token = create_access_token(identity='user-1', additional_claims={'school_id': 'school-a'})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def make_score(app):
    def _make_score(score_sheet, competition_date=date(2024, 3, 2), school_id='school-a',
                    event_type='Armed Exhibition', competition_id='comp-1',
                    competition_name='Spring Drill Meet'):
        record = CompetitionEventScore(
            school_id=school_id,
            event_type=event_type,
            competition_id=competition_id,
            competition_name=competition_name,
            competition_date=competition_date,
            score_sheet=score_sheet
        )
        db.session.add(record)
        db.session.commit()
        return record
    return _make_score


@pytest.fixture
def make_mapping(app):
    def _make_mapping(display_name, original_criteria, school_id='school-a',
                      event_type='Armed Exhibition', is_global=False, usage_count=1):
        mapping = CriteriaMapping(
            display_name=display_name,
            original_criteria=list(original_criteria),
            school_id=None if is_global else school_id,
            event_type=event_type,
            is_global=is_global,
            usage_count=usage_count
        )
        db.session.add(mapping)
        db.session.commit()
        return mapping
    return _make_mapping
