from datetime import datetime
from app import db


class CriteriaMapping(db.Model):
    """
    User-curated grouping of scoring criteria under one display name.

    `original_criteria` holds the raw or formatted criterion labels the
    mapping absorbs. Rows with `is_global` set have no owning school and are
    shared with every school for the same event type.
    """
    __tablename__ = 'criteria_mappings'

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(120), nullable=False, index=True)
    display_name = db.Column(db.String(200), nullable=False)
    original_criteria = db.Column(db.JSON, nullable=False, default=list)

    # Ownership
    school_id = db.Column(db.String(64), nullable=True, index=True)
    is_global = db.Column(db.Boolean, nullable=False, default=False)
    created_by = db.Column(db.String(64), nullable=True)

    usage_count = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index('idx_criteria_mappings_school_event', 'school_id', 'event_type'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'event_type': self.event_type,
            'display_name': self.display_name,
            'original_criteria': list(self.original_criteria or []),
            'school_id': self.school_id,
            'is_global': bool(self.is_global),
            'usage_count': self.usage_count or 1,
            'created_by': self.created_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f'<CriteriaMapping {self.display_name} ({self.event_type})>'
