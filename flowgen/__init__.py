"""Conversation flow generator and normalizer package."""

from flowgen.compiler.normalizer import FlowNormalizer
from flowgen.main import FlowGenerator

__all__ = ["FlowGenerator", "FlowNormalizer"]
