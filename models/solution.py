import uuid
from datetime import datetime, timezone

from models import db


class Solution(db.Model):
    """Solution model - a solved question together with its model response"""
    __tablename__ = 'solutions'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Anonymous requests leave this empty
    user_id = db.Column(db.String(36), index=True)

    # matematik, geometri, fizik, kimya, biyoloji, tarih, edebiyat
    subject = db.Column(db.String(50), nullable=False)

    # primary, high, lise
    level = db.Column(db.String(50), nullable=False)

    question_text = db.Column(db.Text)

    # Reference name of the uploaded photo, if any
    uploaded_file_path = db.Column(db.String(255))

    # Full structured response e.g. {"summary": "...", "steps": [...], "final_answer": "5", ...}
    model_response_json = db.Column(db.JSON, nullable=False)

    verified = db.Column(db.Boolean, default=False)
    confidence = db.Column(db.Float, default=0.0)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), index=True)

    # Relationships
    feedback = db.relationship('Feedback', back_populates='solution', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'subject': self.subject,
            'level': self.level,
            'question_text': self.question_text,
            'uploaded_file_path': self.uploaded_file_path,
            'model_response_json': self.model_response_json,
            'verified': bool(self.verified),
            'confidence': self.confidence,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f'<Solution {self.id} subject={self.subject} verified={self.verified}>'
