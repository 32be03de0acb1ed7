import logging
import os

from huffman_core import huffman_encoding, huffman_decoding
from huffman_container import export_container, import_container

log = logging.getLogger(__name__)


def compress_file(input_path, output_path, max_input_bytes=None):
    with open(input_path, "rb") as f:
        data = f.read()

    result = huffman_encoding(data, max_input_bytes=max_input_bytes)
    blob = export_container(result.codes, result.encoded)

    with open(output_path, "wb") as f:
        f.write(blob)

    original_size = len(data)
    compressed_size = len(blob)
    saved = original_size - compressed_size
    saved_percent = round(saved / original_size * 100, 2) if original_size else 0

    log.info("compressed %s (%d bytes) -> %s (%d bytes)",
             input_path, original_size, output_path, compressed_size)

    return {
        "original_size": original_size,
        "compressed_size": compressed_size,
        "saved": saved,
        "saved_percent": saved_percent,
        "unique_symbols": result.stats.unique_symbols,
    }


def decompress_file(input_path, output_path, max_input_bytes=None):
    with open(input_path, "rb") as f:
        blob = f.read()

    contents = import_container(blob)
    if not contents.has_table:
        log.warning("%s has no code table, nothing to decode", input_path)

    data = huffman_decoding(contents.bits, contents.codes, max_input_bytes=max_input_bytes)

    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
    with open(output_path, "wb") as f:
        f.write(data)

    log.info("decompressed %s -> %s (%d bytes)", input_path, output_path, len(data))
    return output_path
