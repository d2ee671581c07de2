import socket
import random
from errors import ConfigError

EPHEMERAL_RANGE=(8000, 49151)

def port_is_free(host, port):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            return True
        except OSError:
            return False

def get_random_unused_port(host="127.0.0.1", start=EPHEMERAL_RANGE[0], end=EPHEMERAL_RANGE[1], max_attempts=10):
    for _ in range(max_attempts):
        port=random.randint(start, end)
        if port_is_free(host, port): return port
    raise ConfigError(f"Could not find an unused port on {host} after {max_attempts} attempts")
