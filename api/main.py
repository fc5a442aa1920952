"""
PollutionWatch - Hosted Deployment Entry
The report page, form API and map served as one ASGI callable.
"""

import os
import sys

# src/ lives next to this directory, not on the import path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.api.main import app

handler = app
