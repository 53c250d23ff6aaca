"""Utility helpers for core components."""

from .json_io import extract_json_block, parse_llm_json, strip_code_fence

__all__ = ["parse_llm_json", "strip_code_fence", "extract_json_block"]
