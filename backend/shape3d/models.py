from shape3d import db
import time


class KeyValueEntry(db.Model):
    """One string value in the flat key-value store (``game:<session>:<field>``)."""
    __tablename__ = 'kv_entry'
    key = db.Column(db.String(255), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.Float, nullable=False, default=time.time)

    def to_dict(self):
        return {
            'key': self.key,
            'value': self.value,
            'updated_at': self.updated_at,
        }
