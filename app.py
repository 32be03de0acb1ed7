import io
import logging
import os
import traceback

from flask import Flask, Request, current_app, request, jsonify, send_file, url_for
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename

from config import Config, content_length_limit
from huffman_core import HuffmanError, CapacityExceeded, UnknownSymbol, huffman_encoding, huffman_decoding
from huffman_container import (
    MalformedContainer,
    codes_from_tokens,
    codes_to_tokens,
    export_container,
    import_container,
    symbol_to_token,
)
from file_compression import compress_file, decompress_file

VERSION = "1.0"

# -----------------------------------------------------------
# FLASK APP SETUP
# -----------------------------------------------------------
class HuffmanRequest(Request):
    # follows MAX_INPUT_BYTES as it is at request time
    @property
    def max_content_length(self):
        return content_length_limit(current_app.config["MAX_INPUT_BYTES"])


app = Flask(__name__)
app.request_class = HuffmanRequest
app.config.from_object(Config)
app.json.sort_keys = False
CORS(app)

# -----------------------------------------------------------
# HELPER FUNCTIONS
# -----------------------------------------------------------
def data_dir():
    path = app.config["DATA_DIR"]
    os.makedirs(path, exist_ok=True)
    return path


def error(message, status):
    return jsonify({"success": False, "error": message}), status


def request_text():
    """Input bytes from a JSON {"text": ...} body or the raw body."""
    if request.is_json:
        payload = request.get_json(silent=True) or {}
        text = payload.get("text", "")
        if not isinstance(text, str):
            return None
        return text.encode("utf-8")
    return request.get_data()


def request_codes(payload):
    """Returns (encoded, codes) from a decode/export body or raises ValueError."""
    encoded = payload.get("encoded")
    tokens = payload.get("codes")
    if not isinstance(encoded, str):
        raise ValueError("'encoded' field not found")
    if tokens is None:
        raise ValueError("'codes' field not found")
    try:
        codes = codes_from_tokens(tokens)
    except MalformedContainer as e:
        raise ValueError(str(e)) from e
    return encoded, codes


def encode_response(result):
    stats = result.stats
    return {
        "encoded": result.encoded,
        "frequencies": {symbol_to_token(s): n for s, n in sorted(result.frequencies.items())},
        "codes": codes_to_tokens(result.codes),
        "tree": result.tree,
        "stats": {
            "originalBits": stats.original_bits,
            "encodedBits": stats.encoded_bits,
            "compressionRatio": round(stats.compression_ratio, 2),
            "uniqueChars": stats.unique_symbols,
        },
    }

# -----------------------------------------------------------
# ERROR HANDLERS
# -----------------------------------------------------------
@app.errorhandler(CapacityExceeded)
def capacity_exceeded(e):
    app.logger.warning("rejected input: %s", e)
    return error(str(e), 413)


@app.errorhandler(UnknownSymbol)
def unknown_symbol(e):
    return error(str(e), 400)


@app.errorhandler(RequestEntityTooLarge)
def request_too_large(e):
    return error("Request body too large", 413)

# -----------------------------------------------------------
# API ROUTES
# -----------------------------------------------------------
@app.route("/api/status")
def status():
    return jsonify({"status": "running", "backend": "python", "version": VERSION})


@app.route("/api/encode", methods=["POST"])
def encode():
    data = request_text()
    if data is None:
        return error("'text' must be a string", 400)

    app.logger.info("[ENCODE] Input length: %d bytes", len(data))
    if not data:
        return error("No text provided", 400)

    result = huffman_encoding(data, max_input_bytes=app.config["MAX_INPUT_BYTES"])
    app.logger.info("[ENCODE] Output length: %d bits", len(result.encoded))
    return jsonify(encode_response(result))


@app.route("/api/decode", methods=["POST"])
def decode():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return error("Invalid request format - expected a JSON object", 400)

    try:
        encoded, codes = request_codes(payload)
    except ValueError as e:
        app.logger.info("[DECODE] bad request: %s", e)
        return error(f"Invalid request format - {e}", 400)

    app.logger.info("[DECODE] Input length: %d bits", len(encoded))
    decoded = huffman_decoding(encoded, codes, max_input_bytes=app.config["MAX_INPUT_BYTES"])
    app.logger.info("[DECODE] Output length: %d bytes", len(decoded))

    return jsonify({
        "decoded": decoded.decode("utf-8", errors="replace"),
        "byteLength": len(decoded),
    })


@app.route("/api/export", methods=["POST"])
def export():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return error("Invalid request format - expected a JSON object", 400)

    try:
        encoded, codes = request_codes(payload)
    except ValueError as e:
        return error(f"Invalid request format - {e}", 400)
    if encoded.strip("01"):
        return error("'encoded' must contain only 0 and 1", 400)

    blob = export_container(codes, encoded)
    return send_file(
        io.BytesIO(blob),
        as_attachment=True,
        download_name="huffman_encoded.huff",
        mimetype="application/octet-stream",
    )


@app.route("/api/import", methods=["POST"])
def import_():
    file = request.files.get("file")
    if not file:
        return error("No file uploaded", 400)

    contents = import_container(file.read())
    limit = app.config["MAX_INPUT_BYTES"] * 8
    if len(contents.bits) > limit:
        raise CapacityExceeded(len(contents.bits), limit)
    return jsonify({
        "encoded": contents.bits,
        "codes": codes_to_tokens(contents.codes),
        "hasTable": contents.has_table,
    })

# -----------------------------------------------------------
# FILE COMPRESSION ROUTES
# -----------------------------------------------------------
@app.route("/api/compress_file", methods=["POST"])
def compress_file_route():
    try:
        file = request.files.get("file")
        if not file:
            return error("No file uploaded", 400)

        filename = secure_filename(file.filename or "")
        if not filename:
            return error("Invalid file name", 400)

        input_path = os.path.join(data_dir(), filename)
        file.save(input_path)

        compressed_filename = f"{filename}.huff"
        compressed_path = os.path.join(data_dir(), compressed_filename)
        try:
            stats = compress_file(input_path, compressed_path, app.config["MAX_INPUT_BYTES"])
        except HuffmanError:
            os.remove(input_path)
            raise

        return jsonify({
            "success": True,
            "filename": filename,
            "compressed_filename": compressed_filename,
            **stats,
            "download_url": url_for("download", filename=compressed_filename),
        })

    except HuffmanError:
        raise
    except Exception as e:
        app.logger.error("Error in /api/compress_file: %s", e)
        traceback.print_exc()
        return error("Internal server error", 500)


@app.route("/api/decompress_file", methods=["POST"])
def decompress_file_route():
    try:
        file = request.files.get("file")
        if not file:
            return error("No file uploaded", 400)

        filename = secure_filename(file.filename or "")
        if not filename.endswith(".huff") or len(filename) <= len(".huff"):
            return error("Invalid file type", 400)

        input_path = os.path.join(data_dir(), filename)
        file.save(input_path)

        output_filename = filename[:-len(".huff")]
        output_path = os.path.join(data_dir(), output_filename)
        try:
            decompress_file(input_path, output_path, app.config["MAX_INPUT_BYTES"])
        except HuffmanError:
            os.remove(input_path)
            raise

        return jsonify({
            "success": True,
            "original_huff": filename,
            "decompressed_file": output_filename,
            "decompressed_size": os.path.getsize(output_path),
            "download_url": url_for("download", filename=output_filename),
        })

    except HuffmanError:
        raise
    except Exception as e:
        app.logger.error("Error in /api/decompress_file: %s", e)
        traceback.print_exc()
        return error("Internal server error", 500)


@app.route("/download/<filename>")
def download(filename):
    file_path = os.path.join(data_dir(), secure_filename(filename))
    if not os.path.isfile(file_path):
        return error("File not found", 404)

    return send_file(
        file_path,
        as_attachment=True,
        download_name=os.path.basename(file_path),
        mimetype="application/octet-stream",
    )

# -----------------------------------------------------------
def init_logging(verbose=False):
    level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(asctime)s][%(levelname)s] %(message)s"))
    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)


if __name__ == "__main__":
    init_logging(app.config["DEBUG"])
    app.run(host=app.config["HOST"], port=app.config["PORT"], debug=app.config["DEBUG"])
