"""
Analytics resource routes.
"""

from .resources import create_resources_router

__all__ = ["create_resources_router"]
