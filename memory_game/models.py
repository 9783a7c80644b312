from memory_game import db
from memory_game.services.sessions.errors import InvalidInput
import json
import time


class CardSet(db.Model):
    __tablename__ = 'card_set'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False, index=True)
    image_paths = db.Column(db.Text, nullable=False)  # JSON-encoded ordered list of image references
    created_at = db.Column(db.Float, default=time.time, nullable=False)

    @property
    def images(self):
        try:
            return json.loads(self.image_paths or '[]')
        except ValueError:
            return []

    @images.setter
    def images(self, paths):
        self.image_paths = json.dumps(list(paths))

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'image_paths': self.images,
            'created_at': self.created_at,
        }


def load_card_set_images(card_set_id):
    """Ordered image references of a stored card set, ready for the deck builder."""
    try:
        card_set = db.session.get(CardSet, int(card_set_id))
    except (TypeError, ValueError):
        card_set = None
    if card_set is None:
        raise InvalidInput('Card set not found')
    return card_set.images
