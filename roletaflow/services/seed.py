"""
Seed companies and their vehicle roster for local or demo use.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.company import Company
from ..models.vehicle import Vehicle

logger = logging.getLogger("seed")


def _load_seed(path: Path) -> List[Dict[str, Any]]:
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, list):
        return data
    return []


def seed_fleet(db: Session, seed_path: Path) -> int:
    """
    Seed companies and vehicles if no company exists yet.

    Returns number of vehicles inserted.
    """
    existing = db.query(func.count(Company.id)).scalar() or 0
    if existing > 0:
        return 0
    if not seed_path.exists():
        logger.warning("Fleet seed file not found: %s", seed_path)
        return 0
    count = 0
    for item in _load_seed(seed_path):
        name = (item.get("name") or "").strip()
        if not name:
            continue
        company = Company(name=name, is_active=bool(item.get("is_active", True)))
        db.add(company)
        db.flush()
        for veh in item.get("vehicles", []) or []:
            number = str(veh.get("number") or "").strip()
            if not number:
                continue
            db.add(
                Vehicle(
                    number=number,
                    plate=(veh.get("plate") or "").strip().upper(),
                    type=veh.get("type"),
                    company_id=company.id,
                    is_active=bool(veh.get("is_active", True)),
                )
            )
            count += 1
    db.commit()
    return count
