"""Spreadsheet import pipeline for multilingual questions."""
