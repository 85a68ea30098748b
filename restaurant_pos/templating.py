from __future__ import annotations

from pathlib import Path

from fastapi.templating import Jinja2Templates

from restaurant_pos.services.receipt_service import format_money, format_timestamp

TEMPLATE_DIR = Path(__file__).resolve().parent / 'templates'

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
templates.env.filters['money'] = format_money
templates.env.filters['timestamp'] = format_timestamp
