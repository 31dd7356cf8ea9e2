from .user import User
from .project import Project
from .invoice import Invoice
from .notification import Notification
