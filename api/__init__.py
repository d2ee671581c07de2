from flask import Blueprint
from .cert import cert_bp
from .utils import process_cache_headers

api_bp=Blueprint("API", __name__)

@api_bp.after_request
def add_cache_headers(resp):
    return process_cache_headers(resp)

api_bp.register_blueprint(cert_bp)
