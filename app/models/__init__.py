from .office import Office
from .user import User, ManagerOffice
from .campaign import Campaign
from .import_batch import ImportBatch
from .lead import Lead
from .lead_history import LeadHistory

__all__ = ["Office", "User", "ManagerOffice", "Campaign", "ImportBatch", "Lead", "LeadHistory"]
