"""Utility modules."""

from .config import Config, HarnessSettings
from .model_analysis import ModelAnalyzer

__all__ = ['Config', 'HarnessSettings', 'ModelAnalyzer']
