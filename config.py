import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_int(name, default):
    value = os.environ.get(name)
    return int(value) if value else default


def content_length_limit(max_input_bytes):
    """Request body cap for a given input bound.

    Leaves room for multipart framing and for the eight characters per byte
    of a bit string in JSON.
    """
    return max_input_bytes * 10 + 64 * 1024


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Same 1 MB cap the original socket server applied to request bodies
    MAX_INPUT_BYTES = _env_int("HUFFMAN_MAX_INPUT_BYTES", 1024 * 1024)

    DATA_DIR = os.environ.get("HUFFMAN_DATA_DIR", os.path.join(BASE_DIR, "data"))

    HOST = os.environ.get("HUFFMAN_HOST", "127.0.0.1")
    PORT = _env_int("HUFFMAN_PORT", 8080)
    DEBUG = _env_bool("HUFFMAN_DEBUG")
