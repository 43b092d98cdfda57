"""
Extension archive handling: container decoding, manifest dumps and extraction.
"""

from t3scripts.archive.container import encode_container, load_container, parse_container
from t3scripts.archive.materializer import ManifestMaterializer, MaterializationReport, iter_file_entries
from t3scripts.archive.printer import dump_value_tree, format_value_tree

__all__ = [
    "ManifestMaterializer",
    "MaterializationReport",
    "dump_value_tree",
    "encode_container",
    "format_value_tree",
    "iter_file_entries",
    "load_container",
    "parse_container",
]
