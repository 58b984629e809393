"""Demo users and leads for team A. Run with ``python -m vilead.crm.seed``."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from vilead.core.database import Base, SessionLocal, engine
from vilead.crm.models import CRMLead, CRMLeadActivity, CRMUser
from vilead.crm.search import refresh_search_text
from vilead.logging import configure_logging


logger = logging.getLogger("app.lifecycle")

DEMO_USERS: list[dict[str, str]] = [
    {"id": "admin_1", "email": "admin@vilead.com", "display_name": "Admin User", "role": "admin"},
    {"id": "leader_a", "email": "leader.a@vilead.com", "display_name": "Nguyễn Văn Anh", "role": "leader"},
    {"id": "sale_a1", "email": "sale.a1@vilead.com", "display_name": "Trần Thị Bình", "role": "sale"},
    {"id": "sale_a2", "email": "sale.a2@vilead.com", "display_name": "Lê Văn Cường", "role": "sale"},
    {"id": "sale_a3", "email": "sale.a3@vilead.com", "display_name": "Phạm Thị Dung", "role": "sale"},
]

DEMO_LEADS: list[dict[str, Any]] = [
    {
        "name": "Nguyễn Văn A",
        "phone": "0901234567",
        "email": "nguyenvana@email.com",
        "source": "facebook",
        "region": "ha_noi",
        "product": "Website",
        "status": "new",
        "stage": "reception",
        "value": Decimal("15000000"),
        "notes": "Quan tâm thiết kế website bán hàng",
        "assigned_to": "sale_a1",
    },
    {
        "name": "Trần Thị B",
        "phone": "0912345678",
        "email": "tranthib@email.com",
        "source": "zalo",
        "region": "ho_chi_minh",
        "product": "Marketing",
        "status": "contacted",
        "stage": "consulting",
        "value": Decimal("8000000"),
        "notes": "Cần hỗ trợ quảng cáo Facebook",
        "assigned_to": "sale_a2",
    },
    {
        "name": "Lê Văn C",
        "phone": "0923456789",
        "email": "levanc@email.com",
        "source": "google_ads",
        "region": "da_nang",
        "product": "Đào tạo",
        "status": "potential",
        "stage": "quoted",
        "value": Decimal("25000000"),
        "notes": "Đào tạo nhân viên marketing",
        "assigned_to": "sale_a3",
    },
    {
        "name": "Phạm Thị D",
        "phone": "0934567890",
        "email": "phamthid@email.com",
        "source": "manual",
        "region": "ha_noi",
        "product": "Website",
        "status": "new",
        "stage": "reception",
        "value": Decimal("12000000"),
        "notes": "Startup cần website landing page",
        "assigned_to": "sale_a1",
    },
    {
        "name": "Hoàng Văn E",
        "phone": "0945678901",
        "email": "hoangvane@email.com",
        "source": "facebook",
        "region": "ho_chi_minh",
        "product": "Marketing",
        "status": "contacted",
        "stage": "negotiating",
        "value": Decimal("20000000"),
        "notes": "Chuỗi nhà hàng cần chiến dịch marketing",
        "assigned_to": "sale_a2",
    },
]


def seed_demo_data(session: Session) -> dict[str, int]:
    """Insert missing demo users, then demo leads if the lead table is empty."""

    users_created = 0
    for data in DEMO_USERS:
        if session.get(CRMUser, data["id"]) is None:
            session.add(CRMUser(**data))
            users_created += 1
    session.flush()

    leads_created = 0
    if not session.scalar(select(func.count()).select_from(CRMLead)):
        for data in DEMO_LEADS:
            lead = CRMLead(created_by="admin_1", tags=[], **data)
            refresh_search_text(lead)
            lead.activities.append(
                CRMLeadActivity(
                    activity_type="lead_created",
                    actor_user_id="admin_1",
                    description="Lead created",
                    details={"stage": data["stage"], "assigned_to": data["assigned_to"]},
                )
            )
            session.add(lead)
            leads_created += 1

    session.commit()
    return {"users": users_created, "leads": leads_created}


def main() -> None:
    configure_logging()
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        counts = seed_demo_data(session)
    logger.info("seed.finished", extra={"rows_total": counts["users"] + counts["leads"]})


if __name__ == "__main__":
    main()
