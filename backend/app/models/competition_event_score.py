from datetime import datetime
from app import db


class CompetitionEventScore(db.Model):
    """
    One scored performance of a school at a competition event.

    Rows are written by the scoring workflow and are read-only here.
    The score sheet is schema-less; a typical sheet looks like:
    {
        "scores": {
            "field_3_2": {"Routine_Marching": "8.5"},
            "field_5_Uniform_Violation": -1
        }
    }
    """
    __tablename__ = 'competition_event_scores'

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.String(64), nullable=False, index=True)

    # Event type name, e.g. "Armed Exhibition"
    event_type = db.Column(db.String(120), nullable=False, index=True)

    # Competition the event belongs to (internal or portal competition)
    competition_id = db.Column(db.String(64), nullable=False, index=True)
    competition_name = db.Column(db.String(200), nullable=True)
    competition_date = db.Column(db.Date, nullable=True, index=True)

    # Flexible JSON score sheet
    score_sheet = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.Index('idx_event_scores_school_event', 'school_id', 'event_type'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'school_id': self.school_id,
            'event_type': self.event_type,
            'competition_id': self.competition_id,
            'competition_name': self.competition_name,
            'competition_date': self.competition_date.isoformat() if self.competition_date else None,
            'score_sheet': self.score_sheet or {},
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f'<CompetitionEventScore {self.id} - {self.event_type} - {self.competition_date}>'
