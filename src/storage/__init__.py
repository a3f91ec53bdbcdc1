"""
Swivel Counter - Storage Module

This module handles persisted settings and count history.
"""

from .database import Database

__all__ = ['Database']
