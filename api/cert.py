from flask import Blueprint, Response, jsonify
from .utils import make_json_error, current_credentials

cert_bp=Blueprint("cert", __name__)

@cert_bp.route("/cert")
def cert_pem():
    credentials=current_credentials()
    if credentials is None: return make_json_error(404, "No certificate loaded")
    return Response(credentials.cert, mimetype="application/x-pem-file")

@cert_bp.route("/info")
def cert_info():
    credentials=current_credentials()
    if credentials is None: return make_json_error(404, "No certificate loaded")
    info=credentials.certificate.describe()
    info["signature_valid"]=credentials.certificate.verify_signature()
    return jsonify(info)
