"""
LeadRepository for database operations on Lead model
"""

from sqlalchemy.ext.asyncio import AsyncSession
from database_models import Lead
from utils.shared_utils import new_id


class LeadRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_lead(self, lead_data: dict) -> Lead:
        """
        Persist a lead captured by the sales form.

        Args:
            lead_data: name, email, plan and requires_invoice are required;
                phone, company, tax_id, business_name and user_id are optional.

        Returns:
            Created Lead object
        """
        lead = Lead(
            id=new_id("lead"),
            user_id=lead_data.get("user_id"),
            name=lead_data["name"],
            email=lead_data["email"],
            phone=lead_data.get("phone"),
            company=lead_data.get("company"),
            plan=lead_data["plan"],
            requires_invoice=lead_data.get("requires_invoice", False),
            tax_id=lead_data.get("tax_id"),
            business_name=lead_data.get("business_name"),
        )
        self.db.add(lead)
        await self.db.flush()
        await self.db.refresh(lead)
        return lead
