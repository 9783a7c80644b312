from flask import Blueprint, jsonify, request, current_app
from memory_game import db
from memory_game.models import CardSet
import os
import uuid


card_sets = Blueprint('card_sets', __name__)


def _extension(filename: str) -> str:
    return os.path.splitext(filename or '')[1].lower().lstrip('.')


def _allowed_image(filename: str) -> bool:
    ext = _extension(filename)
    allowed = current_app.config.get('ALLOWED_IMAGE_EXTENSIONS', {'png', 'jpg', 'jpeg', 'gif', 'webp'})
    return bool(ext) and ext in allowed


@card_sets.route('/images', methods=['POST'])
def upload_images():
    """
    Stores a batch of uploaded images and returns one stable path per image.
    """
    images = [f for f in request.files.getlist('images') if f and f.filename]
    if len(images) < 2:
        return jsonify({'success': False, 'message': 'Add at least 2 images'}), 400
    if any(not _allowed_image(f.filename) for f in images):
        return jsonify({'success': False, 'message': 'Only image files can be uploaded'}), 400

    upload_folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(upload_folder, exist_ok=True)

    image_paths = []
    for image in images:
        file_name = f"{uuid.uuid4().hex}.{_extension(image.filename)}"
        image.save(os.path.join(upload_folder, file_name))
        image_paths.append(f"/uploads/{file_name}")

    current_app.logger.info(f"[upload] stored {len(image_paths)} images")
    return jsonify({'success': True, 'image_paths': image_paths}), 201


@card_sets.route('/card-sets', methods=['GET'])
def list_card_sets():
    sets = CardSet.query.order_by(CardSet.name).all()
    return jsonify([s.to_dict() for s in sets])


@card_sets.route('/card-sets', methods=['POST'])
def create_card_set():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    image_paths = data.get('image_paths')

    if not name:
        return jsonify({'error': 'Card set name is required'}), 400
    if not isinstance(image_paths, list) or len(image_paths) < 2:
        return jsonify({'error': 'At least 2 image paths are required'}), 400
    if any(not isinstance(p, str) or not p.strip() for p in image_paths):
        return jsonify({'error': 'Image paths must be non-empty strings'}), 400
    if len(set(image_paths)) != len(image_paths):
        return jsonify({'error': 'Image paths must be unique'}), 400
    if CardSet.query.filter_by(name=name).first():
        return jsonify({'error': 'A card set with that name already exists'}), 400

    card_set = CardSet(name=name[:64])
    card_set.images = image_paths
    db.session.add(card_set)
    db.session.commit()
    current_app.logger.info(f"[card-set] created id={card_set.id} name={card_set.name} images={len(image_paths)}")
    return jsonify(card_set.to_dict()), 201


@card_sets.route('/card-sets/<int:card_set_id>', methods=['GET'])
def get_card_set(card_set_id):
    card_set = db.get_or_404(CardSet, card_set_id)
    return jsonify(card_set.to_dict())


@card_sets.route('/card-sets/<int:card_set_id>', methods=['DELETE'])
def delete_card_set(card_set_id):
    card_set = db.get_or_404(CardSet, card_set_id)
    db.session.delete(card_set)
    db.session.commit()
    return jsonify({'message': 'Card set deleted'}), 200
