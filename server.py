import ssl
import logging
from pathlib import Path
from flask import Flask, Response
from werkzeug.serving import make_server

from api import api_bp
from self_ssl import create_ssl
from utils import colored_log, BLUE, YELLOW
from utils.random_port import get_random_unused_port

logger = logging.getLogger(__name__)

def create_app(credentials=None):
    app=Flask(__name__)
    app.config["CREDENTIALS"]=credentials
    app.register_blueprint(api_bp, url_prefix="/api")

    @app.route("/")
    def index(): return Response("devhttps server running\n", mimetype="text/plain")

    return app

def make_ssl_context(cert_file, key_file):
    context=ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version=ssl.TLSVersion.TLSv1_2
    context.load_cert_chain(str(cert_file), str(key_file))
    return context

def make_https_server(credentials, cert_file, key_file, host="127.0.0.1", port=0):
    context=make_ssl_context(cert_file, key_file)
    server=make_server(host, port, create_app(credentials), threaded=True, ssl_context=context)
    logger.info(f"HTTPS server bound to {host}:{server.server_port}")
    return server

def serve(options=None, host="127.0.0.1", port=0, directory="certs", cert_file="cert.pem", key_file="key.pem"):
    directory=Path(directory)
    cert_path, key_path=directory/cert_file, directory/key_file
    credentials=create_ssl(cert_path, key_path, options)
    if not port: port=get_random_unused_port(host)
    server=make_https_server(credentials, cert_path, key_path, host, port)
    colored_log(BLUE, "INFO", f"Serving https://{host}:{server.server_port}/ for {credentials.certificate.subject.common_name}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        colored_log(YELLOW, "INFO", "Shutting down")
    finally:
        server.server_close()
