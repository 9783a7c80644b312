from flask import Blueprint, jsonify, current_app, send_from_directory

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Memory game server!'})

@main.route('/health')
def health():
    dispatcher = current_app.extensions['session_dispatcher']
    return jsonify({'status': 'ok', 'sessions': len(dispatcher.registry)})

@main.route('/uploads/<path:filename>')
def uploaded_image(filename):
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)
