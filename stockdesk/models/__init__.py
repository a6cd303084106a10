from stockdesk.models.user import User
from stockdesk.models.business import Business
from stockdesk.models.business_membership import BusinessMembership
from stockdesk.models.audit_log import AuditLog
from stockdesk.models.product import Product, ProductLog
