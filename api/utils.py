from flask import jsonify, current_app

def make_json_error(status, message): return jsonify({"error": message, "status": status}), status

def current_credentials():
    return current_app.config.get("CREDENTIALS")

def process_cache_headers(resp):
    resp.headers["Cache-Control"]="no-store"
    return resp
