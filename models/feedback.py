import uuid
from datetime import datetime, timezone

from models import db


class Feedback(db.Model):
    """Feedback model - a student's rating of a solution"""
    __tablename__ = 'feedback'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    solution_id = db.Column(db.String(36), db.ForeignKey('solutions.id'), nullable=False, index=True)
    user_id = db.Column(db.String(36))

    # 1-5
    rating = db.Column(db.Integer)
    comment = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    solution = db.relationship('Solution', back_populates='feedback')

    def to_dict(self):
        return {
            'id': self.id,
            'solution_id': self.solution_id,
            'user_id': self.user_id,
            'rating': self.rating,
            'comment': self.comment,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f'<Feedback solution_id={self.solution_id} rating={self.rating}>'
