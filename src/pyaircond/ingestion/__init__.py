"""Decoding and bus ingestion."""
