"""Minimal upload endpoint for running the uploader end to end locally.

    RECEIVER_DIR=/tmp/received python receiver.py
"""
import os

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.utils import secure_filename

RECEIVER_DIR = os.getenv("RECEIVER_DIR", "./received")
RECEIVER_HOST = os.getenv("RECEIVER_HOST", "127.0.0.1")
RECEIVER_PORT = int(os.getenv("RECEIVER_PORT", "8080"))


def create_app(storage_dir: str = RECEIVER_DIR) -> Flask:
    app = Flask(__name__)
    CORS(app)
    os.makedirs(storage_dir, exist_ok=True)

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok'}), 200

    @app.route('/upload', methods=['POST'])
    def upload():
        uploaded = request.files.get('file')
        if uploaded is None or not uploaded.filename:
            return jsonify({'error': "Missing multipart field 'file'"}), 400

        filename = secure_filename(uploaded.filename)
        if not filename:
            return jsonify({'error': f'Invalid filename: {uploaded.filename!r}'}), 400

        try:
            uploaded.save(os.path.join(storage_dir, filename))
        except OSError as e:
            return jsonify({'error': str(e)}), 500
        return jsonify({'message': 'File received.', 'filename': filename}), 200

    @app.route('/api/files', methods=['GET'])
    def list_files():
        try:
            files = [f for f in os.listdir(storage_dir) if os.path.isfile(os.path.join(storage_dir, f))]
            return jsonify({'files': sorted(files)}), 200
        except OSError as e:
            return jsonify({'error': str(e)}), 500

    return app


def main():
    create_app().run(host=RECEIVER_HOST, port=RECEIVER_PORT)


if __name__ == '__main__':
    main()
