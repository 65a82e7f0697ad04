from flask import Blueprint, jsonify
from naming_things import db

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the naming-things game server!'})

@main.route('/health')
def health():
    db.session.execute(db.text('SELECT 1'))
    return jsonify({'status': 'ok'})
