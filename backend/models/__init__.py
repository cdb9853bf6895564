from models.base import Building, Vendor, Tenant
from models.coi import RequirementTemplate, COI, COIFile, NotificationLog, AuditLog
