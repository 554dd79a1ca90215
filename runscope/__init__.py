"""Runscope backend: radar checks over captured LLM runs."""

__version__ = "0.1.0"
